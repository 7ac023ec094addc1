"""Mutating commands: new-model, move."""

from __future__ import annotations

from typing import Optional

import click

from bprepo.cli_helpers import _fail, _open_manager
from bprepo.errors import ModelError
from bprepo.model import new_model
from bprepo.qualifier import Qualifier, is_valid_identifier


def register(cli: click.Group) -> None:
    cli.add_command(new_model_cmd)
    cli.add_command(move)


@click.command("new-model")
@click.argument("name")
@click.option("--import", "-i", "imports", multiple=True, help="Model to import. Repeatable.")
@click.option("--description", "-d", default=None, help="Model description.")
@click.option("--default-package", default=None, help="Python package for bare handler names.")
@click.pass_context
def new_model_cmd(
    ctx: click.Context,
    name: str,
    imports: tuple[str, ...],
    description: Optional[str],
    default_package: Optional[str],
) -> None:
    """Create an empty model NAME in the filesystem store."""
    if not is_valid_identifier(name):
        _fail(f"Model name '{name}' must not contain any of / : . ;")
    manager = _open_manager(ctx, writable=True)
    model = new_model(name, *imports, description=description, default_package=default_package)
    try:
        manager.add_model(model)
    except ModelError as exc:
        _fail(exc)
    click.echo(f"Created model {model.qualifier} at {model.location}")
    for line in manager.messages.lines():
        click.echo(f"  warning: {line}", err=True)


@click.command()
@click.argument("qualifier")
@click.argument("destination")
@click.pass_context
def move(ctx: click.Context, qualifier: str, destination: str) -> None:
    """Rename an item or move it to another model.

    DESTINATION is a new name (``NewName``) or a qualifier
    (``/OtherModel`` or ``/OtherModel/NewName``).

    \b
    Examples:
        bprepo move /Sales/Process:CheckOrder ValidateOrder
        bprepo move /Sales/Process:CheckOrder /Billing/CheckInvoice
    """
    manager = _open_manager(ctx, writable=True)
    try:
        item = manager.get_item(Qualifier.parse(qualifier), required=True)
        old = item.qualifier.typed
        manager.move_item(item, destination)
    except ModelError as exc:
        _fail(exc)
    click.echo(f"Moved {old} -> {item.qualifier.typed}")
