"""Custom exception hierarchy for mdlayer."""

from __future__ import annotations

__all__ = [
    "BundleError",
    "CacheError",
    "ConfigError",
    "DocumentValidationError",
    "FilesystemError",
    "FormatDetectionError",
    "MdlayerError",
    "PluginError",
    "SchemaError",
]


class MdlayerError(Exception):
    """Base exception for all mdlayer errors."""


class ConfigError(MdlayerError):
    """Raised when configuration loading, resolution or validation fails."""


class CacheError(MdlayerError):
    """Raised when the generation cache cannot be loaded or saved."""


class FilesystemError(MdlayerError):
    """Raised when an output artifact cannot be written."""


class PluginError(MdlayerError):
    """Raised when a bundler cannot be registered or looked up."""


class FormatDetectionError(MdlayerError):
    """Raised when a document format cannot be derived from its extension."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Unable to detect format for file: {path}")
        self.path = path


class DocumentValidationError(MdlayerError):
    """Raised when a document's front matter fails its schema.

    Carries the source location of the first failing field so that
    editors and terminals can jump straight to it.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str,
        field: str,
        line: int = 0,
        column: int = 0,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.field = field
        self.line = line
        self.column = column

    @property
    def location(self) -> str:
        return f"{self.path}:{self.line}:{self.column}"


class BundleError(MdlayerError):
    """Raised when the bundler reports an error for a document body."""

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(f"Failed to bundle {path}: {message}")
        self.path = path


class SchemaError(MdlayerError):
    """Raised by validators; carries ``(field, message)`` issues."""

    def __init__(self, issues: list[tuple[str, str]]) -> None:
        self.issues = issues or [("", "validation failed")]
        summary = "; ".join(f"{f or '<root>'}: {m}" for f, m in self.issues)
        super().__init__(summary)

    @property
    def field(self) -> str:
        return self.issues[0][0]
