"""Destructive reset command."""

import click

from ledgerfix.cli.error_handling import handle_domain_error
from ledgerfix.cli.services import echo_errors, echo_progress
from ledgerfix.domain.reset import CONFIRMATION_PHRASE, ResetScope, ResetService


@click.command("reset")
@click.option(
    "--scope",
    type=click.Choice([scope.value for scope in ResetScope]),
    default=ResetScope.TRANSACTIONS.value,
    show_default=True,
    help="'transactions' clears postings and documents; 'complete' also clears setup data",
)
@click.option("--confirm", "confirmation", help=f"Confirmation phrase ('{CONFIRMATION_PHRASE}')")
@click.option("--code", "authorization_code", help="Admin authorization code")
@click.pass_context
def reset_data(ctx, scope: str, confirmation: str | None, authorization_code: str | None):
    """Delete all transactional data (or everything with --scope complete).

    Requires the confirmation phrase and the admin authorization code set in
    LEDGERFIX_ADMIN_PIN. Both are prompted for when not given.
    """
    settings = ctx.obj["settings"]
    reset_scope = ResetScope(scope)

    click.echo(f"This permanently deletes: {', '.join(reset_scope.collections)}")
    if confirmation is None:
        confirmation = click.prompt(f"Type '{CONFIRMATION_PHRASE}' to continue")
    if authorization_code is None:
        authorization_code = click.prompt("Authorization code", hide_input=True)

    admin_code = settings.admin_pin.get_secret_value() if settings.admin_pin else None
    service = ResetService(ctx.obj["db"], admin_code, on_progress=echo_progress)
    try:
        result = service.reset(reset_scope, confirmation, authorization_code)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return

    for collection, count in result.deleted.items():
        if count:
            click.echo(f"  {collection}: {count}")
    click.echo(f"Deleted {result.total_deleted} document{'s' if result.total_deleted != 1 else ''}")
    echo_errors(result.errors)
    if not result.success:
        ctx.exit(1)


def register_commands(cli):
    """Register reset command with main CLI."""
    cli.add_command(reset_data, name="reset")
