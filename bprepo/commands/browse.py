"""Read-only commands: models, items, show, resolve."""

from __future__ import annotations

from typing import Optional

import click

from bprepo.cli_helpers import _backend_name, _fail, _open_manager
from bprepo.descriptors import to_string
from bprepo.errors import ModelError
from bprepo.qualifier import Qualifier


def register(cli: click.Group) -> None:
    cli.add_command(models)
    cli.add_command(items)
    cli.add_command(show)
    cli.add_command(resolve)


@click.command()
@click.pass_context
def models(ctx: click.Context) -> None:
    """List the loaded models with their backend, location and imports."""
    manager = _open_manager(ctx, initialize=False)
    found = manager.get_models()
    if not found:
        click.echo("No models found.")
        return
    for model in found:
        click.echo(f"{model.name:<24} {_backend_name(model):<11} {model.location}")
        if model.imports:
            click.echo(f"{'':<24} imports: {', '.join(model.imports)}")


@click.command()
@click.argument("model_name")
@click.option("--type", "-t", "item_type", default=None, help="Only list items of this type.")
@click.pass_context
def items(ctx: click.Context, model_name: str, item_type: Optional[str]) -> None:
    """List the items of MODEL_NAME."""
    manager = _open_manager(ctx, initialize=False)
    try:
        model = manager.get_model(model_name, required=True)
    except ModelError as exc:
        _fail(exc)
    for item in model.get_items(item_type):
        click.echo(item.qualifier.typed)


@click.command()
@click.argument("qualifier")
@click.pass_context
def show(ctx: click.Context, qualifier: str) -> None:
    """Print the descriptor of the model, item or object QUALIFIER addresses.

    \b
    Examples:
        bprepo show /System
        bprepo show /System/Type:KeyValue
        bprepo show /System/Type:KeyValue.value
    """
    manager = _open_manager(ctx)
    try:
        q = Qualifier.parse(qualifier)
        if not q.is_absolute:
            _fail(f"'{qualifier}' is not an absolute qualifier.")
        model = manager.get_model(q, required=True)
        if q.item is None:
            obj = model
        else:
            obj = model.resolve_object_ref(str(q), q.item_type)
    except ModelError as exc:
        _fail(exc)
    click.echo(to_string(obj))


@click.command()
@click.argument("model_name")
@click.argument("name")
@click.option("--type", "-t", "item_type", default=None, help="Item type to look for.")
@click.option("--object", "as_object", is_flag=True, help="NAME may address an object inside an item.")
@click.pass_context
def resolve(ctx: click.Context, model_name: str, name: str, item_type: Optional[str], as_object: bool) -> None:
    """Resolve NAME as written inside MODEL_NAME and print where it was found.

    Relative names are looked up in the model, then in its imports in
    declaration order, then in the System model.
    """
    manager = _open_manager(ctx)
    try:
        model = manager.get_model(model_name, required=True)
        if as_object:
            found = model.resolve_object_ref(name, item_type)
        else:
            found = model.resolve_item_ref(name, item_type)
    except ModelError as exc:
        _fail(exc)
    click.echo(found.qualifier.typed)
