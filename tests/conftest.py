"""Shared fixtures: on-disk model trees and isolation from the user's config."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

import bprepo.config
from bprepo.config import RepositorySettings
from bprepo.manager import StoreModelManager
from bprepo.multiplex import build_manager
from bprepo.stores.filesystem import FileSystemStore

_ENV = [
    "BPREPO_MODEL_PATH",
    "BPREPO_ADDITIONAL_MODEL_PATH",
    "BPREPO_MODEL_PATTERNS",
    "BPREPO_RESOURCE_PACKAGE",
    "BPREPO_RESOURCE_PREFIX",
    "BPREPO_RELOAD_ON_RESET",
    "BPREPO_INSTANTIATE_ITEMS",
]


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Never read ~/.bprepo/config.json or BPREPO_* variables from the host."""
    config_file = tmp_path / "home" / ".bprepo" / "config.json"
    monkeypatch.setattr(bprepo.config, "_config_path", lambda: config_file)
    for var in _ENV:
        monkeypatch.delenv(var, raising=False)
    return config_file


def write_model(
    root: Path,
    name: str,
    imports: tuple[str, ...] = (),
    items: Optional[dict[str, str]] = None,
    attrs: str = "",
) -> Path:
    """Write ``<root>/<name>/model.xml`` plus item files given as {relative path: xml}."""
    model_dir = root / name
    model_dir.mkdir(parents=True, exist_ok=True)
    import_xml = "".join(f"<import>{i}</import>" for i in imports)
    (model_dir / "model.xml").write_text(
        f'<?xml version="1.0" encoding="utf-8"?>\n<Model name="{name}"{attrs}>{import_xml}</Model>\n'
    )
    for rel, text in (items or {}).items():
        path = model_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    return model_dir


SALES_ITEMS = {
    "type/Amount.xml": '<Type name="Amount" className="decimal.Decimal" simple="true" />',
    "type/Order.xml": (
        '<Type name="Order" className="sales.Order">'
        '<member name="id" type="String" />'
        '<member name="amount" type="Amount" />'
        "</Type>"
    ),
    "activity/Validate.xml": '<Activity name="Validate" handler="sales_handlers:validate" />',
    "process/CheckOrder.xml": (
        '<Process name="CheckOrder">'
        '<node name="Entry" kind="initial"><param name="amount" type="Amount" /></node>'
        '<node name="Check" kind="activity" ref="Validate" />'
        '<node name="Done" kind="final" />'
        "</Process>"
    ),
}


@pytest.fixture
def model_root(tmp_path) -> Path:
    root = tmp_path / "models"
    root.mkdir()
    return root


@pytest.fixture
def sales_repo(model_root) -> Path:
    """Sales imports Common; Common holds a complex type."""
    write_model(model_root, "Sales", imports=("Common",), items=SALES_ITEMS)
    write_model(
        model_root,
        "Common",
        items={
            "type/Address.xml": (
                '<Type name="Address" className="common.Address">'
                '<member name="street" type="String" />'
                "</Type>"
            ),
        },
    )
    return model_root


@pytest.fixture
def fs_manager(model_root) -> StoreModelManager:
    return StoreModelManager(FileSystemStore(model_root))


@pytest.fixture
def repo(sales_repo):
    """Filesystem store plus bundled System model, loaded and initialized."""
    mgr = build_manager(RepositorySettings(model_path=str(sales_repo)))
    mgr.read_models()
    mgr.initialize_models()
    yield mgr
    for model in mgr.get_models():
        model.release_code_resolver()
