"""Configuration system for mdlayer.

Manages project configuration via ``mdlayer.toml`` with typed dataclasses
and sensible defaults, and resolves it into the runtime configuration a
generation pass works from.
"""

from __future__ import annotations

import importlib
import logging
import sys
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import tomli_w

from mdlayer.assets import AssetRegistry
from mdlayer.cache import Cache
from mdlayer.discovery import DEFAULT_PATTERNS
from mdlayer.exceptions import ConfigError, MdlayerError
from mdlayer.formats import DETECT
from mdlayer.registry import default_registry
from mdlayer.schemas import Schema, as_schema
from mdlayer.types import DocumentFormat, GenerationMode

if TYPE_CHECKING:
    from mdlayer.bundle.base import BaseBundler

_T = TypeVar("_T")

__all__ = [
    "CONFIG_FILE",
    "BundlerConfig",
    "ContentConfig",
    "DocumentDefinition",
    "GitOptions",
    "MdlayerConfig",
    "OutputConfig",
    "OutputPaths",
    "ResolvedConfig",
    "default_config",
    "get_git_options",
    "load_config",
    "resolve_config",
    "save_config",
]

logger = logging.getLogger(__name__)

CONFIG_FILE = "mdlayer.toml"
CACHE_FILE = "cache.json"


@dataclass(frozen=True)
class GitOptions:
    """Which git-derived fields to add to each document."""

    updated: bool = False
    authors: bool = False

    @property
    def enabled(self) -> bool:
        return self.updated or self.authors


def get_git_options(git: bool | dict[str, Any] | GitOptions | None) -> GitOptions:
    """Normalize the ``git`` setting of a definition.

    ``false``/missing disables git lookups, ``true`` enables the last
    updated date only, and a table overrides individual flags.
    """
    if isinstance(git, GitOptions):
        return git
    if git is None or git is False:
        return GitOptions(updated=False, authors=False)
    if git is True:
        return GitOptions(updated=True, authors=False)
    if isinstance(git, dict):
        return GitOptions(
            updated=bool(git.get("updated", True)),
            authors=bool(git.get("authors", False)),
        )
    raise ConfigError(f"Invalid git option: {git!r}")


@dataclass(frozen=True)
class DocumentDefinition:
    """A declared document type.

    ``schema`` is a ``module:attribute`` reference while the definition
    comes straight from the config file, and a resolved
    :data:`~mdlayer.schemas.Schema` once :func:`resolve_config` ran.
    """

    type: str
    patterns: tuple[str, ...] = DEFAULT_PATTERNS
    schema: str | Schema | None = None
    format: str = DETECT
    git: GitOptions = field(default_factory=GitOptions)


@dataclass
class ContentConfig:
    """[content] section."""

    dir: str = "content"
    md_as_mdoc: bool = False


@dataclass
class OutputConfig:
    """[output] section."""

    dir: str = ".mdlayer"
    assets_base_url: str = "/assets"


@dataclass
class BundlerConfig:
    """[bundler] section."""

    name: str = "default"
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class MdlayerConfig:
    """Root configuration combining all sections."""

    content: ContentConfig = field(default_factory=ContentConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    bundler: BundlerConfig = field(default_factory=BundlerConfig)
    definitions: dict[str, DocumentDefinition] = field(default_factory=dict)


@dataclass(frozen=True)
class OutputPaths:
    """Absolute output locations derived from ``[output] dir``."""

    root: Path
    assets: Path
    generated: Path
    cache: Path

    @classmethod
    def from_root(cls, root: Path) -> OutputPaths:
        return cls(
            root=root,
            assets=root / "assets",
            generated=root / "generated",
            cache=root / CACHE_FILE,
        )


@dataclass
class ResolvedConfig:
    """Everything one process incarnation needs to run generation passes.

    Replaced wholesale when a configuration dependency changes.
    """

    mode: GenerationMode
    config_path: Path
    root_dir: Path
    content_dir: Path
    output: OutputPaths
    definitions: dict[str, DocumentDefinition]
    cache: Cache
    bundler: BaseBundler
    bundler_options: dict[str, Any] = field(default_factory=dict)
    md_as_mdoc: bool = False
    assets: AssetRegistry = field(default_factory=AssetRegistry)
    config_dependencies: tuple[Path, ...] = ()


def default_config() -> MdlayerConfig:
    """Return a config with all default values."""
    return MdlayerConfig()


def _definition_to_dict(definition: DocumentDefinition) -> dict[str, object]:
    data: dict[str, object] = {"patterns": list(definition.patterns)}
    if isinstance(definition.schema, str):
        data["schema"] = definition.schema
    if definition.format != DETECT:
        data["format"] = definition.format
    data["git"] = {"updated": definition.git.updated, "authors": definition.git.authors}
    return data


def _config_to_dict(config: MdlayerConfig) -> dict[str, object]:
    """Convert MdlayerConfig to a nested dict suitable for TOML serialization."""
    return {
        "content": dict(vars(config.content)),
        "output": dict(vars(config.output)),
        "bundler": dict(vars(config.bundler)),
        "definitions": {
            name: _definition_to_dict(defn) for name, defn in config.definitions.items()
        },
    }


def save_config(config: MdlayerConfig, path: Path) -> None:
    """Save configuration to a TOML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = _config_to_dict(config)
    try:
        with path.open("wb") as f:
            tomli_w.dump(data, f)
        logger.info("Saved config to %s", path)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise ConfigError(f"Failed to save config to {path}: {e}") from e


def _load_section(cls: type[_T], data: object) -> _T:
    """Load a dataclass section from a dict, ignoring unknown keys."""
    if not isinstance(data, dict):
        raise ConfigError(f"[{cls.__name__}] section must be a table")
    known_fields = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
    filtered = {k: v for k, v in data.items() if k in known_fields}
    return cls(**filtered)


def _load_definition(name: str, data: object) -> DocumentDefinition:
    if not isinstance(data, dict):
        raise ConfigError(f"Definition '{name}' must be a table")

    patterns = data.get("patterns", list(DEFAULT_PATTERNS))
    if isinstance(patterns, str):
        patterns = [patterns]
    if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
        raise ConfigError(f"Definition '{name}': patterns must be a string or list of strings")

    fmt = str(data.get("format", DETECT))
    if fmt != DETECT and fmt not in {f.value for f in DocumentFormat}:
        raise ConfigError(f"Definition '{name}': unknown format {fmt!r}")

    schema = data.get("schema")
    if schema is not None and not isinstance(schema, str):
        raise ConfigError(f"Definition '{name}': schema must be a 'module:attribute' string")

    return DocumentDefinition(
        type=name,
        patterns=tuple(patterns),
        schema=schema,
        format=fmt,
        git=get_git_options(data.get("git")),
    )


def load_config(path: Path) -> MdlayerConfig:
    """Load configuration from a TOML file.

    Missing sections or keys get default values.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_bytes().decode("utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.error("Failed to load config from %s: %s", path, e)
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    config = MdlayerConfig()
    section_map: dict[str, type] = {
        "content": ContentConfig,
        "output": OutputConfig,
        "bundler": BundlerConfig,
    }
    for name, cls in section_map.items():
        if name in data:
            setattr(config, name, _load_section(cls, data[name]))

    definitions = data.get("definitions", {})
    if not isinstance(definitions, dict):
        raise ConfigError("[definitions] must be a table of document types")
    config.definitions = {
        name: _load_definition(name, defn) for name, defn in definitions.items()
    }

    logger.info("Loaded config from %s", path)
    return config


# Names of project modules imported by a previous resolve_config call.
_project_modules: set[str] = set()


def _forget_project_modules() -> None:
    """Drop previously imported project modules so the next import re-executes them."""
    for name in _project_modules:
        sys.modules.pop(name, None)
    _project_modules.clear()


def _record_project_modules(added: set[str], root: Path) -> list[Path]:
    """Remember which of ``added`` live under ``root`` and return their files."""
    sources: list[Path] = []
    for name in sorted(added):
        source = getattr(sys.modules.get(name), "__file__", None)
        if not source:
            continue
        path = Path(source).resolve()
        if path.is_relative_to(root):
            _project_modules.add(name)
            sources.append(path)
    return sources


def _import_reference(reference: str, root: Path) -> tuple[object, Path | None]:
    """Import ``module:attribute`` with ``root`` importable.

    A module imported elsewhere beforehand is reloaded so that a restart
    after an edit sees the new code. Returns the object and the module's
    source file.
    """
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Invalid reference {reference!r}, expected 'module:attribute'")

    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)

    importlib.invalidate_caches()
    try:
        if module_name in sys.modules:
            module = importlib.reload(sys.modules[module_name])
        else:
            module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import {module_name!r} for {reference!r}: {e}") from e

    try:
        obj = module
        for part in attr.split("."):
            obj = getattr(obj, part)
    except AttributeError as e:
        raise ConfigError(f"{module_name!r} has no attribute {attr!r}") from e

    source = getattr(module, "__file__", None)
    return obj, Path(source).resolve() if source else None


def resolve_config(
    mode: GenerationMode,
    config_path: Path,
    config: MdlayerConfig | None = None,
) -> ResolvedConfig:
    """Resolve a config file into a :class:`ResolvedConfig`.

    Paths are resolved relative to the config file's directory. Schema
    references are imported, and every module living under that directory
    that the imports pulled in, directly or through other modules, is
    recorded as a configuration dependency to watch. Those modules are
    imported afresh on the next call. The cache is constructed and loaded
    from disk.

    Args:
        mode: Generation mode.
        config_path: Path to ``mdlayer.toml``.
        config: Already-loaded configuration (skips reading the file).
    """
    config_path = config_path.resolve()
    if config is None:
        config = load_config(config_path)
    root_dir = config_path.parent

    dependencies: list[Path] = [config_path]

    def track(source: Path | None) -> None:
        if source is not None and source.is_relative_to(root_dir) and source not in dependencies:
            dependencies.append(source)

    _forget_project_modules()
    before = set(sys.modules)
    definitions: dict[str, DocumentDefinition] = {}
    try:
        for name, definition in config.definitions.items():
            schema = definition.schema
            if isinstance(schema, str):
                schema, source = _import_reference(schema, root_dir)
                track(source)
            definitions[name] = replace(definition, schema=as_schema(schema))

        if ":" in config.bundler.name:
            # project-defined bundler: make it importable and watch its source
            track(_import_reference(config.bundler.name, root_dir)[1])
    finally:
        # helpers pulled in by schema or bundler modules are dependencies too
        for source in _record_project_modules(set(sys.modules) - before, root_dir):
            track(source)

    try:
        bundler = default_registry.create("bundler", config.bundler.name, config.bundler.options)
    except (MdlayerError, TypeError) as e:
        raise ConfigError(f"Cannot create bundler {config.bundler.name!r}: {e}") from e

    output = OutputPaths.from_root((root_dir / config.output.dir).resolve())
    cache = Cache(output.cache)
    cache.load()

    resolved = ResolvedConfig(
        mode=mode,
        config_path=config_path,
        root_dir=root_dir,
        content_dir=(root_dir / config.content.dir).resolve(),
        output=output,
        definitions=definitions,
        cache=cache,
        bundler=bundler,
        bundler_options=dict(config.bundler.options),
        md_as_mdoc=config.content.md_as_mdoc,
        assets=AssetRegistry(base_url=config.output.assets_base_url),
        config_dependencies=tuple(dependencies),
    )
    logger.info(
        "Resolved %d document type(s) from %s (%s mode)",
        len(definitions),
        config_path,
        mode.value,
    )
    return resolved
