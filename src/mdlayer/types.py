"""Data contracts for mdlayer.

Frozen dataclasses that flow between generation stages:
  Path → (front matter, body) → BundleRequest → BundleResult → Document
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

__all__ = [
    "BundleMessage",
    "BundleRequest",
    "BundleResult",
    "Document",
    "DocumentBody",
    "DocumentFormat",
    "GenerationMode",
    "GenerationSummary",
]


class DocumentFormat(str, Enum):
    """Body format of a content file."""

    MARKDOWN = "md"
    MDX = "mdx"
    MARKDOC = "mdoc"


class GenerationMode(str, Enum):
    """Build mode; development enables the watch loop."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


@dataclass(frozen=True)
class GenerationSummary:
    """Counts for one generation pass (or one document type within it)."""

    cached: int = 0
    generated: int = 0
    total: int = 0

    def __add__(self, other: GenerationSummary) -> GenerationSummary:
        return GenerationSummary(
            cached=self.cached + other.cached,
            generated=self.generated + other.generated,
            total=self.total + other.total,
        )


@dataclass(frozen=True)
class BundleMessage:
    """A single diagnostic reported by a bundler."""

    text: str
    line: int = 0


@dataclass(frozen=True)
class BundleRequest:
    """Everything a bundler needs to compile one document body."""

    path: str
    format: DocumentFormat
    contents: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BundleResult:
    """Output of a bundler: compiled code, or a non-empty error list."""

    code: str = ""
    errors: tuple[BundleMessage, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class DocumentBody:
    format: DocumentFormat
    raw: str
    code: str


@dataclass(frozen=True)
class Document:
    """A compiled document, ready for serialization."""

    id: str
    type: str
    slug: str
    data: dict[str, Any]
    body: DocumentBody
    computed: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON artifact shape.

        Validated data first, then the computed fields which win on
        key collisions.
        """
        return {
            **self.data,
            **self.computed,
            "_id": self.id,
            "_type": self.type,
            "slug": self.slug,
            "body": {
                "format": self.body.format.value,
                "raw": self.body.raw,
                "code": self.body.code,
            },
        }
