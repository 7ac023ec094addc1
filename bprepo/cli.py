"""
bprepo command-line interface.

Usage::

    bprepo --model-path ~/models models
    bprepo items Sales --type Process
    bprepo show /Sales/Process:CheckOrder.Entry.amount
    bprepo resolve Sales Integer --type Type
    bprepo check
    bprepo reset --reload
    bprepo new-model Billing --import Sales
    bprepo move /Sales/Process:CheckOrder /Billing/CheckInvoice
"""

from __future__ import annotations

import logging
from typing import Optional

import click

from bprepo import __version__
from bprepo.config import load_settings


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="bprepo")
@click.option(
    "--model-path",
    default=None,
    type=click.Path(file_okay=False),
    help="Root directory of the filesystem model store (default: BPREPO_MODEL_PATH).",
)
@click.option(
    "--pattern",
    "patterns",
    multiple=True,
    help="Only load models matching this shell pattern. Repeatable.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output.")
@click.pass_context
def main(ctx: click.Context, model_path: Optional[str], patterns: tuple[str, ...], verbose: bool) -> None:
    """bprepo: inspect and maintain a repository of business-process models."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = load_settings(model_path=model_path, model_patterns=list(patterns))


# ---------------------------------------------------------------------------
# Register command modules
# ---------------------------------------------------------------------------

from bprepo.commands import browse, edit, maintenance  # noqa: E402

for _mod in [browse, maintenance, edit]:
    _mod.register(main)
