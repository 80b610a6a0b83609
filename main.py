#!/usr/bin/env python3
"""
AMG back office: CLI entry point.

Usage examples:
  python main.py init-db                            # Create data dirs and the database schema
  python main.py check                              # Verify setup (database, storage, templates)
  python main.py next-number                        # Preview the next order number

  python main.py orders list                        # Latest orders
  python main.py orders list --status shipped --search bijoux --limit 0
  python main.py orders show 12
  python main.py orders status 12 confirmed
  python main.py orders cancel 12
  python main.py orders delete 12 --yes
  python main.py orders document 12 -o CMD2503001.html
"""
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from config import Config
from dashboard.services.document import STATUS_LABELS, render_purchase_order
from models.supplier_order import OrderFilters
from orders.backend import Backend
from orders.company import CompanySettingsService
from orders.errors import OrderError
from orders.lifecycle import SORT_COLUMNS, SupplierOrderManager
from orders.sequence import OrderNumberGenerator
from orders.status import ALL_STATUSES
from orders.storage import ObjectStorage
from orders.totals import format_money
from orders.validator import OrderValidator


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def _manager(config: Config) -> SupplierOrderManager:
    backend = Backend(config.db_path, timeout=config.db_timeout_seconds)
    return SupplierOrderManager(
        backend,
        numbers=OrderNumberGenerator(prefix=config.order_number_prefix),
        validator=OrderValidator(default_currency=config.default_currency),
        max_page_size=config.max_page_size,
    )


def _fail(exc: OrderError) -> None:
    click.echo(f"✗ {exc}", err=True)
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """AMG back office: supplier orders, reception and purchase order documents."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = Config()
    _setup_logging(verbose)


# --------------------------------------------------------------------
# setup commands
# --------------------------------------------------------------------

@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the data directories and the database schema."""
    config: Config = ctx.obj["config"]
    config.ensure_data_dirs()
    try:
        Backend(config.db_path, timeout=config.db_timeout_seconds)
    except OrderError as exc:
        _fail(exc)
    click.echo(f"✓ Database ready: {config.db_path}")
    click.echo(f"✓ Storage ready:  {config.storage_dir}")


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Verify that the database, storage and templates are usable."""
    config: Config = ctx.obj["config"]

    click.echo("\n=== Back Office Setup Check ===\n")
    click.echo(f"  Database:       {config.db_path}")
    if not config.db_path.exists():
        click.echo("  ✗ Database not found → run: python main.py init-db")
        sys.exit(1)
    try:
        counts = Backend(config.db_path, timeout=config.db_timeout_seconds).table_counts()
    except OrderError as exc:
        _fail(exc)
    for table, count in counts.items():
        click.echo(f"    {table:<28} {count:>6} row(s)")

    click.echo()
    tick = "✓" if config.storage_dir.is_dir() else "✗"
    click.echo(f"  Storage dir:    {tick}  {config.storage_dir}")
    template = config.document_template_path
    source = "custom" if template.exists() else "built-in"
    click.echo(f"  PO template:    {source}  ({template})")
    click.echo(f"  Auth required:  {'yes' if config.auth_required else 'no'}")
    click.echo()


@cli.command("next-number")
@click.pass_context
def next_number(ctx: click.Context) -> None:
    """Show the order number the next created order would get."""
    manager = _manager(ctx.obj["config"])
    try:
        click.echo(manager.numbers.next_number(manager.backend))
    except OrderError as exc:
        _fail(exc)


# --------------------------------------------------------------------
# orders commands
# --------------------------------------------------------------------

@cli.group()
def orders() -> None:
    """Inspect and administer supplier orders."""


@orders.command("list")
@click.option("--page", default=1, show_default=True, help="1-based page number")
@click.option("--limit", default=None, type=int, help="Orders per page, 0 for all")
@click.option("--search", default="", help="Match order number or supplier name")
@click.option("--status", default=None, type=click.Choice(sorted(ALL_STATUSES)))
@click.option("--supplier-id", default=None, type=int)
@click.option("--sort-by", default="order_date", show_default=True, type=click.Choice(SORT_COLUMNS))
@click.option("--asc", "ascending", is_flag=True, help="Sort ascending (default: descending)")
@click.pass_context
def list_orders(
    ctx: click.Context,
    page: int,
    limit: Optional[int],
    search: str,
    status: Optional[str],
    supplier_id: Optional[int],
    sort_by: str,
    ascending: bool,
) -> None:
    """List orders, newest first."""
    config: Config = ctx.obj["config"]
    manager = _manager(config)
    try:
        result = manager.list_orders(
            page=page,
            limit=config.default_page_size if limit is None else limit,
            search=search,
            filters=OrderFilters(status=status, supplier_id=supplier_id),
            sort_by=sort_by,
            sort_order="asc" if ascending else "desc",
        )
    except OrderError as exc:
        _fail(exc)

    for order in result.orders:
        supplier = order.supplier.name if order.supplier else f"#{order.supplier_id}"
        click.echo(
            f"  {order.id:>5}  {order.order_number}  {order.order_date}  "
            f"{order.status:<20}  {format_money(order.total_amount, order.currency):>16}  {supplier}"
        )
    click.echo(f"\n{len(result.orders)} of {result.total} order(s), page {result.page}")


@orders.command("show")
@click.argument("order_id", type=int)
@click.pass_context
def show_order(ctx: click.Context, order_id: int) -> None:
    """Show one order with its lines."""
    manager = _manager(ctx.obj["config"])
    try:
        order = manager.get_by_id(order_id)
    except OrderError as exc:
        _fail(exc)

    click.echo()
    click.echo(f"  Order:       {order.order_number}  (id {order.id})")
    click.echo(f"  Supplier:    {order.supplier.name if order.supplier else order.supplier_id}")
    click.echo(f"  Status:      {STATUS_LABELS.get(order.status, order.status)}")
    click.echo(f"  Order date:  {order.order_date}")
    click.echo(f"  Expected:    {order.expected_delivery_date or '(none)'}")
    click.echo()
    for item in order.items:
        name = item.product.name if item.product else f"product #{item.product_id}"
        click.echo(
            f"    {name:<30} {item.received_quantity:>4}/{item.quantity:<4} "
            f"× {format_money(item.unit_price):>10} = {format_money(item.total_price, order.currency)}  [{item.status}]"
        )
    click.echo()
    click.echo(f"  Subtotal:    {format_money(order.subtotal, order.currency)}")
    click.echo(f"  Shipping:    {format_money(order.shipping_cost, order.currency)}")
    click.echo(f"  Tax:         {format_money(order.tax_amount, order.currency)}")
    click.echo(f"  Total:       {format_money(order.total_amount, order.currency)}")
    click.echo()


@orders.command("status")
@click.argument("order_id", type=int)
@click.argument("status", type=click.Choice(sorted(ALL_STATUSES)))
@click.pass_context
def set_status(ctx: click.Context, order_id: int, status: str) -> None:
    """Move an order to another status."""
    manager = _manager(ctx.obj["config"])
    try:
        order = manager.transition(order_id, status)
    except OrderError as exc:
        _fail(exc)
    click.echo(f"✓ {order.order_number} is now {order.status}")


@orders.command("cancel")
@click.argument("order_id", type=int)
@click.pass_context
def cancel_order(ctx: click.Context, order_id: int) -> None:
    """Cancel an order."""
    manager = _manager(ctx.obj["config"])
    try:
        order = manager.cancel(order_id)
    except OrderError as exc:
        _fail(exc)
    click.echo(f"✓ {order.order_number} cancelled")


@orders.command("delete")
@click.argument("order_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_order(ctx: click.Context, order_id: int, yes: bool) -> None:
    """Permanently delete an order and its lines."""
    if not yes:
        click.confirm(f"Delete order {order_id} and all its lines?", abort=True)
    manager = _manager(ctx.obj["config"])
    try:
        manager.delete(order_id)
    except OrderError as exc:
        _fail(exc)
    click.echo(f"✓ Order {order_id} deleted")


@orders.command("document")
@click.argument("order_id", type=int)
@click.option("--output", "-o", default=None, type=click.Path(), help="Write HTML here instead of stdout")
@click.pass_context
def order_document(ctx: click.Context, order_id: int, output: Optional[str]) -> None:
    """Render the printable purchase order as HTML."""
    config: Config = ctx.obj["config"]
    manager = _manager(config)
    company = CompanySettingsService(
        manager.backend, ObjectStorage(config.storage_dir, config.public_base_url)
    )
    try:
        order = manager.get_by_id(order_id)
        suppliers = manager.backend.select(
            "amg_suppliers", filters=[("id", "eq", order.supplier_id)], limit=1
        ).rows
        html = render_purchase_order(
            order,
            company.get(),
            supplier=suppliers[0] if suppliers else None,
            template_file=config.document_template_path,
        )
    except OrderError as exc:
        _fail(exc)

    if output:
        Path(output).write_text(html, encoding="utf-8")
        click.echo(f"✓ Purchase order written to: {output}")
    else:
        click.echo(html)


if __name__ == "__main__":
    cli()
