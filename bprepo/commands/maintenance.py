"""Maintenance commands: check, reset."""

from __future__ import annotations

import dataclasses
from typing import Optional

import click

from bprepo.cli_helpers import _open_manager, _settings
from bprepo.errors import ModelValidationError


def register(cli: click.Group) -> None:
    cli.add_command(check)
    cli.add_command(reset)


@click.command()
@click.option(
    "--instantiate/--no-instantiate",
    default=None,
    help="Bind activity handlers through the model code resolvers.",
)
@click.pass_context
def check(ctx: click.Context, instantiate: Optional[bool]) -> None:
    """Load and validate all models; exit with status 1 on any problem."""
    settings = _settings(ctx)
    if instantiate is not None:
        settings = dataclasses.replace(settings, instantiate_items=instantiate)

    manager = _open_manager(ctx, settings=settings)
    lines = manager.messages.lines()
    for line in lines:
        click.echo(line)
    if lines:
        click.echo(f"\n{len(lines)} problem(s) found.", err=True)
        raise SystemExit(1)
    click.echo(f"{len(manager.get_models())} model(s) OK.")


@click.command()
@click.option(
    "--reload/--soft",
    default=None,
    help="Re-read all models from their stores, or only reset them (default: BPREPO_RELOAD_ON_RESET).",
)
@click.pass_context
def reset(ctx: click.Context, reload: Optional[bool]) -> None:
    """Reset all models and validate them again."""
    manager = _open_manager(ctx)
    try:
        manager.request_model_reset(reload)
    except ModelValidationError as exc:
        click.echo(str(exc), err=True)
        raise SystemExit(1)
    click.echo(f"Reset complete: {len(manager.get_models())} model(s).")
