"""Output artifact writers.

Writes the per-document JSON files, the per-type collection index and
import module, and the static entry files the application imports. Module
sources are rendered from the Jinja2 templates in ``mdlayer/templates``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from importlib.resources import files
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiofiles
import jinja2

from mdlayer.exceptions import FilesystemError
from mdlayer.naming import (
    generate_type_name,
    get_data_variable_name,
    id_to_file_name,
    unique_variable_names,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mdlayer.config import ResolvedConfig

__all__ = [
    "AUTOGENERATED_NOTE",
    "TemplateEngine",
    "render_collection_module",
    "write_collection",
    "write_document",
    "write_entry_files",
    "write_json",
    "write_text",
]

logger = logging.getLogger(__name__)

AUTOGENERATED_NOTE = "// NOTE This file is auto-generated by mdlayer. Do not edit it by hand."


@dataclass(frozen=True)
class ImportItem:
    variable: str
    file: str


class TemplateEngine:
    """Jinja2 environment over the built-in module templates."""

    def __init__(self) -> None:
        builtin_dir = Path(str(files("mdlayer") / "templates"))
        if not builtin_dir.is_dir():
            raise FilesystemError(
                "Built-in template directory not found, installation may be corrupted"
            )
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(builtin_dir)),
            autoescape=False,
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_name: str, **context: Any) -> str:
        template = self._env.get_template(template_name)
        return template.render(note=AUTOGENERATED_NOTE, **context)


@lru_cache(maxsize=1)
def _engine() -> TemplateEngine:
    return TemplateEngine()


async def write_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path``, creating parent directories."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(text)
    except OSError as e:
        logger.error("Failed to write %s: %s", path, e)
        raise FilesystemError(f"Failed to write {path}: {e}") from e


async def write_json(path: Path, data: Any) -> None:
    await write_text(path, json.dumps(data, indent=2, ensure_ascii=False))


async def write_entry_files(config: ResolvedConfig) -> list[Path]:
    """Write ``generated/index.mjs`` and ``generated/index.d.ts``.

    These only depend on the declared types, so they are written once per
    config resolution rather than on every content change.
    """
    definitions = [
        {
            "type": doc_type,
            "variable": get_data_variable_name(doc_type),
            "type_name": generate_type_name(doc_type),
        }
        for doc_type in config.definitions
    ]
    engine = _engine()
    written: list[Path] = []
    for template, name in (("entry.mjs.j2", "index.mjs"), ("entry.d.ts.j2", "index.d.ts")):
        path = config.output.generated / name
        await write_text(path, engine.render(template, definitions=definitions))
        written.append(path)
    logger.debug("Wrote entry files to %s", config.output.generated)
    return written


async def write_document(type_dir: Path, doc_id: str, data: dict[str, Any]) -> Path:
    """Write one document artifact to ``{type_dir}/{mangled id}.json``."""
    path = type_dir / f"{id_to_file_name(doc_id)}.json"
    await write_json(path, data)
    return path


def render_collection_module(doc_type: str, doc_ids: Sequence[str]) -> str:
    """Render the import module for one type, preserving ``doc_ids`` order."""
    imports = [
        ImportItem(variable=variable, file=id_to_file_name(doc_id))
        for doc_id, variable in zip(doc_ids, unique_variable_names(list(doc_ids)), strict=True)
    ]
    return _engine().render(
        "collection.mjs.j2",
        imports=imports,
        variable=get_data_variable_name(doc_type),
    )


async def write_collection(
    type_dir: Path,
    doc_type: str,
    documents: Sequence[tuple[str, dict[str, Any]]],
) -> None:
    """Write ``index.json`` and ``index.mjs`` for one document type.

    Args:
        type_dir: ``{output}/generated/{type}``.
        doc_type: Document type name.
        documents: ``(doc_id, data)`` pairs in discovery order.
    """
    await write_json(type_dir / "index.json", [data for _, data in documents])
    await write_text(
        type_dir / "index.mjs",
        render_collection_module(doc_type, [doc_id for doc_id, _ in documents]),
    )
    logger.debug("Wrote collection for %s (%d documents)", doc_type, len(documents))
