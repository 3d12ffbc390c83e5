"""Entity id renumbering command."""

import click

from ledgerfix.cli.error_handling import handle_domain_error
from ledgerfix.cli.services import echo_errors, echo_progress
from ledgerfix.domain.renumber import RENUMBER_KINDS, RenumberService


@click.command("renumber")
@click.argument("kind", type=click.Choice(sorted(RENUMBER_KINDS)))
@click.option("--dry-run", is_flag=True, help="Show the old -> new id map without writing")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def renumber_entities(ctx, kind: str, dry_run: bool, yes: bool):
    """Give every KIND entity a PREFIX-NNNN id and rewrite references to it.

    Examples:
        ledgerfix renumber divisions --dry-run
        ledgerfix renumber original-types --yes
    """
    settings = ctx.obj["settings"]
    service = RenumberService(
        ctx.obj["db"],
        start=settings.renumber_start,
        on_progress=echo_progress,
        max_batch_operations=settings.batch_size,
    )

    try:
        plan = service.renumber(kind, dry_run=True)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    if not plan.mapping:
        click.echo(f"All {kind} already use the standard id format.")
        return

    for old_id, new_id in plan.mapping.items():
        click.echo(f"  {old_id} -> {new_id}")
    if dry_run:
        click.echo(f"\nWould renumber {len(plan.mapping)} {kind}")
        return

    if not yes and not click.confirm(f"\nRenumber {len(plan.mapping)} {kind} and update all references?"):
        click.echo("Renumbering cancelled.")
        return

    try:
        result = service.renumber(kind)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(
        f"Created {result.created}, updated {result.references_updated} reference(s), "
        f"deleted {result.deleted} old {kind}"
    )
    echo_errors(result.errors)
    if not result.success:
        click.echo("Old documents were kept; rerun to finish.", err=True)
        ctx.exit(1)


def register_commands(cli):
    """Register renumber command with main CLI."""
    cli.add_command(renumber_entities, name="renumber")
