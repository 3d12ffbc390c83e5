"""Corrective commands."""

import click

from ledgerfix.cli.error_handling import handle_domain_error
from ledgerfix.cli.services import (
    echo_errors,
    echo_issues,
    echo_progress,
    get_policy,
    get_roles,
    get_snapshot,
)
from ledgerfix.domain.corrective import CorrectivePoster
from ledgerfix.domain.imbalance import detect_imbalances
from ledgerfix.domain.issues import FixResult, Issue, IssueKind
from ledgerfix.domain.missing_postings import ALL_SCANS, detect_missing_postings
from ledgerfix.domain.source_cleanup import SourceCleanupService
from ledgerfix.domain.recalculate import BalanceRecalculator

SCAN_CHOICES = sorted(kind.value for kind in ALL_SCANS)


@click.group()
def fix_group():
    """Post corrective entries and rewrite stale balances."""
    pass


def _run_fix(ctx, issues: list[Issue], dry_run: bool, yes: bool) -> None:
    settings = ctx.obj["settings"]
    if not issues:
        click.echo("Nothing to fix.")
        return

    echo_issues(issues, "")
    if not dry_run and not yes:
        if not click.confirm(f"\nPost fixes for {len(issues)} issue{'s' if len(issues) != 1 else ''}?"):
            click.echo("Fix cancelled.")
            return

    try:
        poster = CorrectivePoster(
            ctx.obj["db"],
            account_roles=settings.account_roles,
            policy=get_policy(ctx),
            tolerance=settings.tolerance,
            max_batch_operations=settings.batch_size,
        )
        result = poster.apply_fix(issues, dry_run=dry_run, on_progress=echo_progress)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    _echo_result(result)
    if not result.success:
        ctx.exit(1)


def _echo_result(result: FixResult) -> None:
    if result.dry_run and result.planned_entries:
        click.echo("\nPlanned entries:")
        for entry in result.planned_entries:
            side = f"Dr {entry.debit:>12.2f}" if entry.debit else f"Cr {entry.credit:>12.2f}"
            click.echo(f"  {entry.transaction_id:20s} {entry.account_name:30s} {side}  {entry.narration}")
    click.echo(f"\n{result.message}")
    echo_errors(result.errors)


@fix_group.command("imbalances")
@click.option("--dry-run", is_flag=True, help="Show the fixes without writing anything")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def fix_imbalances(ctx, dry_run: bool, yes: bool):
    """Balance unbalanced transactions and overwrite stale balances.

    Missing legs are posted under the same transaction id to the Balance
    Adjustment account (Production Gain for PROD- transactions, raw material
    inventory for PI- transactions missing their debit).

    Examples:
        ledgerfix fix imbalances --dry-run
        ledgerfix fix imbalances --yes
    """
    settings = ctx.obj["settings"]
    try:
        report = detect_imbalances(get_snapshot(ctx), get_policy(ctx), settings.tolerance)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    _run_fix(ctx, report.issues(), dry_run, yes)


@fix_group.command("missing")
@click.option(
    "--kind",
    "kinds",
    multiple=True,
    type=click.Choice(SCAN_CHOICES),
    help="Scan to fix (repeatable; all scans when omitted)",
)
@click.option("--dry-run", is_flag=True, help="Show the fixes without writing anything")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def fix_missing(ctx, kinds: tuple[str, ...], dry_run: bool, yes: bool):
    """Retrofit missing opening balance, purchase, production and COGS postings.

    Examples:
        ledgerfix fix missing --kind missing-opening-balance --yes
        ledgerfix fix missing --dry-run
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
    _run_fix(ctx, issues, dry_run, yes)


@fix_group.command("balances")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def fix_balances(ctx, yes: bool):
    """Recalculate every account and partner balance from the full ledger."""
    settings = ctx.obj["settings"]
    if not yes and not click.confirm("Overwrite all stored balances with ledger-derived values?"):
        click.echo("Recalculation cancelled.")
        return

    try:
        recalculator = BalanceRecalculator(
            ctx.obj["db"],
            get_policy(ctx),
            on_progress=echo_progress,
            max_batch_operations=settings.batch_size,
        )
        result = recalculator.recalculate_all()
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Updated {result.updated} balance{'s' if result.updated != 1 else ''}, {result.unchanged} unchanged")
    echo_errors(result.errors)
    if not result.success:
        ctx.exit(1)


@fix_group.command("sources")
@click.option("--dry-run", is_flag=True, help="List the postings without deleting them")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def fix_sources(ctx, dry_run: bool, yes: bool):
    """Delete postings whose purchase, invoice, opening or production is gone.

    Postings with a wrong leg count are listed but never deleted.

    Examples:
        ledgerfix fix sources --dry-run
        ledgerfix --factory F1 fix sources --yes
    """
    settings = ctx.obj["settings"]
    service = SourceCleanupService(
        ctx.obj["db"],
        factory_id=ctx.obj.get("factory_id"),
        policy=get_policy(ctx),
        max_batch_operations=settings.batch_size,
        on_progress=echo_progress,
    )
    orphaned, _ = service.scan()
    if not orphaned:
        click.echo("Nothing to clean up.")
        return

    echo_issues(orphaned, "")
    if not dry_run and not yes:
        if not click.confirm(f"\nDelete {len(orphaned)} orphaned posting{'s' if len(orphaned) != 1 else ''}?"):
            click.echo("Cleanup cancelled.")
            return

    try:
        result = service.cleanup(dry_run=dry_run)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    verb = "Would delete" if result.dry_run else "Deleted"
    click.echo(
        f"\n{verb} {result.deleted_count} entr{'ies' if result.deleted_count != 1 else 'y'} "
        f"in {len(result.transactions)} transaction{'s' if len(result.transactions) != 1 else ''}, "
        f"skipped {result.skipped_count}"
    )
    for issue in result.wrong_leg_counts:
        click.echo(f"Review {issue.transaction_id}: {issue.reason}")
    echo_errors(result.errors)
    if not result.success:
        ctx.exit(1)


def register_commands(cli):
    """Register fix commands with main CLI."""
    cli.add_command(fix_group, name="fix")
