"""Shared helpers for CLI commands."""

from __future__ import annotations

import sys
from typing import NoReturn, Optional

import click

from bprepo.config import RepositorySettings
from bprepo.errors import ModelError
from bprepo.manager import ModelManager, StoreModelManager
from bprepo.model import Model
from bprepo.multiplex import build_manager


def _fail(message: object) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _settings(ctx: click.Context) -> RepositorySettings:
    settings = ctx.find_root().obj
    if settings is None:
        settings = RepositorySettings()
    return settings


def _open_manager(
    ctx: click.Context,
    writable: bool = False,
    initialize: bool = True,
    settings: Optional[RepositorySettings] = None,
) -> ModelManager:
    """Build the repository from the CLI settings and load all models.

    Load problems are left in ``manager.messages`` for the caller.
    """
    settings = settings or _settings(ctx)
    try:
        manager = build_manager(settings, filesystem=True if writable else None)
        manager.read_models()
    except ModelError as exc:
        _fail(exc)
    if initialize:
        manager.initialize_models()
    return manager


def _backend_name(model: Model) -> str:
    manager = model.manager
    if isinstance(manager, StoreModelManager):
        return manager.store.name
    return "-"
