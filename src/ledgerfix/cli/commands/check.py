"""Read-only diagnostic commands."""

import click

from ledgerfix.cli.error_handling import handle_domain_error
from ledgerfix.cli.services import echo_issues, get_policy, get_roles, get_snapshot
from ledgerfix.domain.balance_sheet import check_balance_sheet
from ledgerfix.domain.duplicates import detect_duplicate_postings
from ledgerfix.domain.imbalance import detect_imbalances
from ledgerfix.domain.issues import IssueKind
from ledgerfix.domain.missing_postings import ALL_SCANS, detect_missing_postings
from ledgerfix.domain.source_cleanup import SourceCleanupService

SCAN_CHOICES = sorted(kind.value for kind in ALL_SCANS)


@click.group()
def check_group():
    """Diagnose ledger integrity (never writes)."""
    pass


@check_group.command("imbalances")
@click.pass_context
def check_imbalances(ctx):
    """Find unbalanced transactions and stale stored balances.

    Examples:
        ledgerfix check imbalances
        ledgerfix --factory FAC-01 check imbalances
    """
    settings = ctx.obj["settings"]
    try:
        report = detect_imbalances(get_snapshot(ctx), get_policy(ctx), settings.tolerance)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    click.echo("\nUnbalanced transactions:")
    echo_issues(list(report.unbalanced_transactions), "  none")
    click.echo("\nAccount balance mismatches:")
    echo_issues(list(report.account_mismatches), "  none")
    click.echo("\nPartner balance mismatches:")
    echo_issues(list(report.partner_mismatches), "  none")

    click.echo("\n" + "-" * 60)
    click.echo(f"Total debit:  {report.total_debit:>16.2f}")
    click.echo(f"Total credit: {report.total_credit:>16.2f}")
    click.echo(f"Net:          {report.net:>16.2f}")
    if report.has_global_imbalance:
        click.echo("Ledger-wide imbalance detected")
    if report.unattributed_entries:
        click.echo(f"{len(report.unattributed_entries)} entries are posted to unknown accounts")
    click.echo("Ledger is clean" if report.is_clean else "Issues found")


@check_group.command("missing")
@click.option(
    "--kind",
    "kinds",
    multiple=True,
    type=click.Choice(SCAN_CHOICES),
    help="Scan to run (repeatable; all scans when omitted)",
)
@click.pass_context
def check_missing(ctx, kinds: tuple[str, ...]):
    """Find postings that should exist but do not.

    Examples:
        ledgerfix check missing
        ledgerfix check missing --kind missing-opening-balance
    """
    settings = ctx.obj["settings"]
    try:
        snapshot = get_snapshot(ctx)
        issues = detect_missing_postings(
            snapshot,
            get_roles(ctx, snapshot),
            kinds=[IssueKind(kind) for kind in kinds] or None,
            tolerance=settings.tolerance,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    echo_issues(issues, "No missing postings found.")
    if issues:
        click.echo(f"\n{len(issues)} issue{'s' if len(issues) != 1 else ''} found")


@check_group.command("duplicates")
@click.option("--threshold", type=int, help="Leg count above which a transaction is suspect")
@click.pass_context
def check_duplicates(ctx, threshold: int | None):
    """Flag transactions that look like repeated postings (estimate)."""
    settings = ctx.obj["settings"]
    suspects = detect_duplicate_postings(
        get_snapshot(ctx).entries,
        threshold=threshold or settings.duplicate_entry_threshold,
        legs_per_posting=settings.legs_per_posting,
    )
    echo_issues(suspects, "No duplicate posting suspects.")
    if suspects:
        click.echo("\nDuplicate counts are estimates; review each transaction before deleting anything.")


@check_group.command("balance-sheet")
@click.pass_context
def check_balance_sheet_cmd(ctx):
    """Check assets == liabilities + equity from stored balances."""
    settings = ctx.obj["settings"]
    try:
        report = check_balance_sheet(get_snapshot(ctx), get_policy(ctx), settings.tolerance)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Assets:           {report.total_assets:>16.2f}")
    click.echo(f"  accounts        {report.account_assets:>16.2f}")
    click.echo(f"  partners        {report.partner_assets:>16.2f}")
    click.echo(f"Liabilities:      {report.total_liabilities:>16.2f}")
    click.echo(f"  accounts        {report.account_liabilities:>16.2f}")
    click.echo(f"  partners        {report.partner_liabilities:>16.2f}")
    click.echo(f"Equity:           {report.total_equity:>16.2f}")
    click.echo(f"  current earnings{report.current_earnings:>16.2f}")
    click.echo(f"Discrepancy:      {report.discrepancy:>16.2f}")
    click.echo("Balance sheet balances" if report.is_balanced else "Balance sheet does NOT balance")


@check_group.command("sources")
@click.pass_context
def check_sources(ctx):
    """List postings whose source document is gone or whose leg count is wrong."""
    service = SourceCleanupService(ctx.obj["db"], factory_id=ctx.obj.get("factory_id"))
    orphaned, wrong_leg_counts = service.scan()
    issues = [*orphaned, *wrong_leg_counts]
    echo_issues(issues, "Every source posting has its document.")
    if issues:
        click.echo(f"\n{len(orphaned)} orphaned, {len(wrong_leg_counts)} with a wrong leg count")


def register_commands(cli):
    """Register check commands with main CLI."""
    cli.add_command(check_group, name="check")
