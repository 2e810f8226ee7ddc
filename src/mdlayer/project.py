"""Project manager for mdlayer.

Handles project initialization, status reporting, and config discovery.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from mdlayer.cache import Cache
from mdlayer.config import (
    CONFIG_FILE,
    DocumentDefinition,
    MdlayerConfig,
    OutputPaths,
    default_config,
    load_config,
    save_config,
)

__all__ = [
    "ProjectManager",
    "ProjectStatus",
    "TypeStatus",
]

logger = logging.getLogger(__name__)

_GITIGNORE_LINE = "{output}/\n"


@dataclass(frozen=True)
class TypeStatus:
    type: str
    patterns: tuple[str, ...]
    cached: int
    has_schema: bool


@dataclass
class ProjectStatus:
    """Summary of the current project state."""

    initialized: bool
    root: Path
    config: MdlayerConfig | None = None
    types: list[TypeStatus] = field(default_factory=list)
    cache_entries: int = 0


class ProjectManager:
    """Manages mdlayer project lifecycle."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root or Path.cwd()

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILE

    @property
    def is_initialized(self) -> bool:
        return self.config_path.is_file()

    def output_paths(self, config: MdlayerConfig) -> OutputPaths:
        return OutputPaths.from_root((self.root / config.output.dir).resolve())

    def init(self, content_dir: str = "", output_dir: str = "") -> Path:
        """Initialize a new mdlayer project.

        Creates ``mdlayer.toml`` and the content directory. Safe to call
        on an already-initialized project (idempotent).

        Returns the config file path.
        """
        if self.is_initialized:
            config = load_config(self.config_path)
            logger.info("Existing config found at %s", self.config_path)
        else:
            config = default_config()

        if content_dir:
            config.content.dir = content_dir
        if output_dir:
            config.output.dir = output_dir

        content_path = self.root / config.content.dir
        content_path.mkdir(parents=True, exist_ok=True)
        for child in sorted(content_path.iterdir()):
            if child.is_dir() and not child.name.startswith((".", "_")):
                config.definitions.setdefault(child.name, DocumentDefinition(type=child.name))

        save_config(config, self.config_path)
        self._ignore_output(config.output.dir)

        logger.info("Initialized mdlayer project at %s", self.root)
        return self.config_path

    def _ignore_output(self, output_dir: str) -> None:
        """Append the output directory to ``.gitignore`` if not listed yet."""
        gitignore = self.root / ".gitignore"
        line = _GITIGNORE_LINE.format(output=output_dir.strip("/"))
        existing = gitignore.read_text(encoding="utf-8") if gitignore.exists() else ""
        if line.strip() in existing.splitlines():
            return
        prefix = "" if not existing or existing.endswith("\n") else "\n"
        gitignore.write_text(existing + prefix + line, encoding="utf-8")

    def status(self) -> ProjectStatus:
        """Get current project state without running a generation pass."""
        if not self.is_initialized:
            return ProjectStatus(initialized=False, root=self.root)

        config = load_config(self.config_path)
        cache = Cache(self.output_paths(config).cache)
        cache.load()

        types = [
            TypeStatus(
                type=name,
                patterns=definition.patterns,
                cached=len(cache.entries_for_type(name)),
                has_schema=definition.schema is not None,
            )
            for name, definition in config.definitions.items()
        ]
        return ProjectStatus(
            initialized=True,
            root=self.root,
            config=config,
            types=types,
            cache_entries=len(cache),
        )

    def clean(self) -> Path | None:
        """Remove the output directory (artifacts and cache)."""
        config = load_config(self.config_path)
        output = self.output_paths(config).root
        if not output.exists():
            return None
        shutil.rmtree(output)
        logger.info("Removed %s", output)
        return output

    @staticmethod
    def find_config(start: Path | None = None) -> Path | None:
        """Walk up from start directory to find ``mdlayer.toml``."""
        current = (start or Path.cwd()).resolve()
        while True:
            candidate = current / CONFIG_FILE
            if candidate.is_file():
                return candidate
            parent = current.parent
            if parent == current:
                return None
            current = parent
