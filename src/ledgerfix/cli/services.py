"""CLI helpers for building services from the click context and rendering results."""

import click

from ledgerfix.domain.balance import BalancePolicy
from ledgerfix.domain.issues import (
    BalanceMismatch,
    BatchProgress,
    FixError,
    Issue,
    UnbalancedTransaction,
)
from ledgerfix.domain.roles import AccountRoleMap
from ledgerfix.domain.snapshot import LedgerSnapshot, load_snapshot


def get_policy(ctx) -> BalancePolicy:
    """Partner sign convention from settings."""
    return BalancePolicy.from_names(ctx.obj["settings"].debit_normal_partner_types)


def get_snapshot(ctx) -> LedgerSnapshot:
    """Load a snapshot restricted to the selected factory, if any."""
    snapshot = load_snapshot(ctx.obj["db"], factory_id=ctx.obj.get("factory_id"))
    if snapshot.skipped:
        click.echo(f"Warning: skipped {len(snapshot.skipped)} unreadable document(s)", err=True)
    return snapshot


def get_roles(ctx, snapshot: LedgerSnapshot) -> AccountRoleMap:
    return AccountRoleMap.resolve(snapshot.accounts, ctx.obj["settings"].account_roles)


def echo_progress(progress: BatchProgress) -> None:
    """Print one line per committed batch."""
    click.echo(
        f"  Batch {progress.batch_index}/{progress.batch_count}: "
        f"{progress.current}/{progress.total} operations"
    )


def format_issue(issue: Issue) -> str:
    """One-line rendering of an issue."""
    when = issue.date.isoformat() if issue.date else "-"
    line = f"[{issue.kind.value}] {issue.entity_id:20s} {when:10s} {issue.expected_value:>14.2f}  {issue.reason}"
    if isinstance(issue, UnbalancedTransaction):
        line += f" (Dr {issue.total_debit:.2f} / Cr {issue.total_credit:.2f})"
    elif isinstance(issue, BalanceMismatch):
        line += f" [{issue.owner_kind.value}: {issue.owner_name}]"
    if not issue.fixable:
        line += " (not auto-fixable)"
    return line


def echo_issues(issues: list[Issue], empty_message: str) -> None:
    if not issues:
        click.echo(empty_message)
        return
    for issue in issues:
        click.echo(format_issue(issue))


def echo_errors(errors: tuple[FixError, ...] | list[FixError]) -> None:
    """List every recorded error; failures are never hidden."""
    if not errors:
        return
    click.echo(f"\nErrors ({len(errors)}):", err=True)
    for error in errors:
        click.echo(f"  {error.entity_id}: {error.message}", err=True)
