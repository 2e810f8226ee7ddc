"""Shared fixtures for mdlayer tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from helpers import write_doc

from mdlayer.config import (
    CONFIG_FILE,
    DocumentDefinition,
    MdlayerConfig,
    ResolvedConfig,
    resolve_config,
    save_config,
)
from mdlayer.types import GenerationMode


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project with a ``blog`` type holding three posts."""
    blog = tmp_path / "content" / "blog"
    write_doc(blog / "alpha.md", {"title": "Alpha", "views": "10"}, "# Alpha\n\nFirst post.\n")
    write_doc(blog / "beta.md", {"title": "Beta", "views": "20"}, "# Beta\n")
    write_doc(blog / "nested" / "gamma.md", {"title": "Gamma", "views": "30"}, "# Gamma\n")

    config = MdlayerConfig(definitions={"blog": DocumentDefinition(type="blog")})
    save_config(config, tmp_path / CONFIG_FILE)
    return tmp_path


@pytest.fixture
def config_path(project: Path) -> Path:
    return project / CONFIG_FILE


@pytest.fixture
def make_config(config_path: Path):
    """Build a ResolvedConfig for ``project`` with the given definitions."""

    def _make(*definitions: DocumentDefinition, md_as_mdoc: bool = False) -> ResolvedConfig:
        config = MdlayerConfig(
            definitions={d.type: d for d in definitions}
            or {"blog": DocumentDefinition(type="blog")}
        )
        config.content.md_as_mdoc = md_as_mdoc
        return resolve_config(GenerationMode.PRODUCTION, config_path, config=config)

    return _make


POST_SCHEMA = '''\
from pydantic import BaseModel


class Post(BaseModel):
    title: str
    views: int = 0
'''


@pytest.fixture(autouse=True)
def _isolated_sys_path(monkeypatch: pytest.MonkeyPatch) -> None:
    """Undo the project roots that schema imports put on ``sys.path``."""
    monkeypatch.setattr(sys, "path", list(sys.path))


@pytest.fixture
def schema_module(project: Path):
    """Write a schema module into ``project`` and return its ``module:attr`` reference."""
    written: list[str] = []

    def _write(
        source: str = POST_SCHEMA, attr: str = "Post", *, prefix: str = "schemas"
    ) -> tuple[str, Path]:
        name = f"{prefix}_{project.name}"
        path = project / f"{name}.py"
        path.write_text(source, encoding="utf-8")
        written.append(name)
        return f"{name}:{attr}", path

    yield _write
    for name in written:
        sys.modules.pop(name, None)
