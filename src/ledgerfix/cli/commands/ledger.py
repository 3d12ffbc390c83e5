"""Ledger transaction commands."""

import getpass

import click

from ledgerfix.cli.error_handling import handle_domain_error
from ledgerfix.cli.services import get_policy
from ledgerfix.domain.balance import sum_credits, sum_debits
from ledgerfix.domain.ledger import LedgerService


@click.group()
def ledger_group():
    """Inspect and delete ledger transactions."""
    pass


@ledger_group.command("show")
@click.argument("transaction_id")
@click.pass_context
def show_transaction(ctx, transaction_id: str):
    """Show the entries of one transaction.

    Examples:
        ledgerfix ledger show INV-1042
    """
    service = LedgerService(ctx.obj["db"])
    try:
        entries = service.get_transaction(transaction_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    if not entries:
        click.echo(f"Error: Transaction '{transaction_id}' not found", err=True)
        ctx.exit(1)

    click.echo(f"\nTransaction {transaction_id} ({entries[0].transaction_type.value}, {entries[0].date.isoformat()})")
    click.echo("-" * 90)
    for entry in entries:
        flag = " *" if entry.is_adjustment else ""
        click.echo(
            f"{entry.account_id:12s} {entry.account_name:30s} "
            f"{entry.debit:>12.2f} {entry.credit:>12.2f}  {entry.narration}{flag}"
        )
    click.echo("-" * 90)
    debit, credit = sum_debits(entries), sum_credits(entries)
    click.echo(f"{'Total':43s} {debit:>12.2f} {credit:>12.2f}")
    if debit != credit:
        click.echo(f"Out of balance by {abs(debit - credit):.2f}")


@ledger_group.command("delete")
@click.argument("transaction_id")
@click.option("--reason", required=True, help="Why the transaction is removed (stored in the archive)")
@click.option("--actor", help="Who is removing it (defaults to the current user)")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def delete_transaction(ctx, transaction_id: str, reason: str, actor: str | None, yes: bool):
    """Delete a transaction, archiving its entries first.

    Balances of every account and partner the transaction touched are then
    recalculated from the ledger.

    Examples:
        ledgerfix ledger delete JV-1007 --reason "Posted twice"
    """
    service = LedgerService(ctx.obj["db"], policy=get_policy(ctx))
    entries = service.get_transaction(transaction_id)
    if not entries:
        click.echo(f"Error: Transaction '{transaction_id}' not found", err=True)
        ctx.exit(1)

    if not yes and not click.confirm(
        f"Delete transaction {transaction_id} ({len(entries)} entr{'ies' if len(entries) != 1 else 'y'})?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        deleted = service.delete_transaction(transaction_id, reason, actor or getpass.getuser())
        click.echo(f"Deleted {deleted} entr{'ies' if deleted != 1 else 'y'} of {transaction_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register ledger commands with main CLI."""
    cli.add_command(ledger_group, name="ledger")
