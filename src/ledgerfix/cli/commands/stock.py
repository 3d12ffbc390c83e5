"""Stock alignment commands."""

import click

from ledgerfix.cli.error_handling import handle_domain_error
from ledgerfix.cli.services import get_policy
from ledgerfix.domain.issues import AlignmentResult
from ledgerfix.domain.stock import StockAlignmentService
from ledgerfix.utils.amount_parser import parse_amount


@click.group()
def stock_group():
    """Align finished-goods and raw-material stock to counted values."""
    pass


def _service(ctx) -> StockAlignmentService:
    settings = ctx.obj["settings"]
    return StockAlignmentService(
        ctx.obj["db"],
        account_roles=settings.account_roles,
        policy=get_policy(ctx),
        tolerance=settings.tolerance,
        factory_id=ctx.obj.get("factory_id"),
    )


def _parse(ctx, value: str | None):
    if value is None:
        return None
    try:
        return parse_amount(value)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)


def _echo_result(result: AlignmentResult) -> None:
    click.echo(result.message)
    if result.transaction_id:
        click.echo(f"Adjustment: {result.adjustment_amount:.2f}")


@stock_group.command("finished-goods")
@click.argument("item_id")
@click.argument("qty")
@click.argument("value")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def align_finished_goods(ctx, item_id: str, qty: str, value: str, yes: bool):
    """Set ITEM_ID's stock to QTY units worth VALUE in total.

    Examples:
        ledgerfix align-stock finished-goods ITM-12 40 1,200.00
    """
    target_qty = _parse(ctx, qty)
    target_value = _parse(ctx, value)
    if not yes and not click.confirm(f"Align item {item_id} to {target_qty} units worth {target_value:.2f}?"):
        click.echo("Alignment cancelled.")
        return

    try:
        result = _service(ctx).align_finished_goods(item_id, target_qty, target_value)
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    _echo_result(result)


@stock_group.command("original")
@click.argument("original_type_id")
@click.argument("supplier_id")
@click.option("--weight", help="Counted weight in Kg (default: current weight)")
@click.option("--value", help="Counted worth (default: current value)")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def align_original(ctx, original_type_id: str, supplier_id: str, weight: str | None, value: str | None, yes: bool):
    """Align the raw-material stock of ORIGINAL_TYPE_ID bought from SUPPLIER_ID.

    Examples:
        ledgerfix align-stock original OT-3 SUP-001 --weight 5000 --value 7,500
    """
    target_weight = _parse(ctx, weight)
    target_value = _parse(ctx, value)
    if not yes and not click.confirm(f"Align original stock {original_type_id} from {supplier_id}?"):
        click.echo("Alignment cancelled.")
        return

    try:
        result = _service(ctx).align_original_stock(
            original_type_id, supplier_id, target_weight=target_weight, target_value=target_value
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
        return
    _echo_result(result)


def register_commands(cli):
    """Register stock alignment commands with main CLI."""
    cli.add_command(stock_group, name="align-stock")
