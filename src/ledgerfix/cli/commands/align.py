"""Balance alignment command."""

import click

from ledgerfix.cli.error_handling import handle_domain_error
from ledgerfix.cli.services import get_policy
from ledgerfix.domain.alignment import BalanceAlignmentService
from ledgerfix.domain.entities import OwnerKind
from ledgerfix.utils.amount_parser import parse_amount


@click.command("align")
@click.argument("owner_id")
@click.argument("target")
@click.option("--partner", is_flag=True, help="OWNER_ID is a partner (default: an account)")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def align_balance(ctx, owner_id: str, target: str, partner: bool, yes: bool):
    """Align an account or partner balance to TARGET.

    Posts a journal voucher between the owner and the Balance Adjustment
    account, dated the day before the owner's first entry.

    Examples:
        ledgerfix align 1100 25000
        ledgerfix align CUS-007 1,500.00 --partner
    """
    settings = ctx.obj["settings"]
    owner_kind = OwnerKind.PARTNER if partner else OwnerKind.ACCOUNT
    try:
        target_amount = parse_amount(target)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    if not yes and not click.confirm(f"Align {owner_kind.value} {owner_id} to {target_amount:.2f}?"):
        click.echo("Alignment cancelled.")
        return

    try:
        service = BalanceAlignmentService(
            ctx.obj["db"],
            account_roles=settings.account_roles,
            policy=get_policy(ctx),
            tolerance=settings.tolerance,
            factory_id=ctx.obj.get("factory_id"),
        )
        result = service.align_balance(owner_id, owner_kind, target_amount)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(result.message)
    if result.transaction_id:
        click.echo(f"Adjustment: {result.adjustment_amount:.2f}")


def register_commands(cli):
    """Register align command with main CLI."""
    cli.add_command(align_balance, name="align")
