"""Front matter schemas.

A definition's schema is either a fixed validator (:class:`StaticSchema`)
or a factory (:class:`SchemaFactory`) that receives a
:class:`SchemaContext` with per-document helpers and returns one. Validators
can be a pydantic model class, a ``TypeAdapter``, or a plain (sync or
async) callable mapping the raw front matter to the transformed data.

Usage::

    @schema_factory
    def project(ctx: SchemaContext):
        class Project(BaseModel):
            title: str
            logo: ctx.image()
        return Project
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, TypeAlias

from pydantic import BaseModel, BeforeValidator, TypeAdapter, ValidationError

from mdlayer.assets import AssetRegistry, ImageAsset
from mdlayer.exceptions import ConfigError, SchemaError

__all__ = [
    "Schema",
    "SchemaContext",
    "SchemaFactory",
    "StaticSchema",
    "as_schema",
    "resolve_schema",
    "schema_factory",
    "to_json_data",
    "validate_frontmatter",
]

logger = logging.getLogger(__name__)

Validator: TypeAlias = Any  # type[BaseModel] | TypeAdapter | Callable[[dict], dict | Awaitable[dict]]

_JSON_DATA = TypeAdapter(dict[str, Any])


def to_json_data(data: Mapping[str, Any]) -> dict[str, Any]:
    """Convert front matter values such as YAML dates to JSON types."""
    return _JSON_DATA.dump_python(dict(data), mode="json")


@dataclass
class SchemaContext:
    """Per-document information and helpers handed to schema factories."""

    type: str
    path: Path
    contents: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    assets: AssetRegistry = field(default_factory=AssetRegistry)

    def image(self) -> Any:
        """Field type for an image path relative to the document.

        Validates that the file exists, registers it for output and
        yields an :class:`~mdlayer.assets.ImageAsset`.
        """

        def _resolve(value: object) -> object:
            if not isinstance(value, str):
                return value
            source = (self.path.parent / value).resolve()
            if not source.is_file():
                raise ValueError(f"image not found: {value}")
            return self.assets.register(source)

        return Annotated[ImageAsset, BeforeValidator(_resolve)]


@dataclass(frozen=True)
class StaticSchema:
    validator: Validator


@dataclass(frozen=True)
class SchemaFactory:
    factory: Callable[[SchemaContext], Validator]


Schema: TypeAlias = StaticSchema | SchemaFactory


def schema_factory(func: Callable[[SchemaContext], Validator]) -> SchemaFactory:
    """Mark ``func`` as a schema factory rather than a validator."""
    return SchemaFactory(func)


def as_schema(value: object) -> Schema | None:
    """Wrap a configured schema value into the tagged variant."""
    if value is None or isinstance(value, StaticSchema | SchemaFactory):
        return value
    if isinstance(value, type) and issubclass(value, BaseModel):
        return StaticSchema(value)
    if isinstance(value, TypeAdapter) or callable(value):
        return StaticSchema(value)
    raise ConfigError(f"Unsupported schema value: {value!r}")


def resolve_schema(schema: Schema | None, context: SchemaContext) -> Validator | None:
    """Turn a schema into the validator for one document."""
    if schema is None:
        return None
    if isinstance(schema, SchemaFactory):
        return schema.factory(context)
    return schema.validator


def _issues_from_pydantic(error: ValidationError) -> list[tuple[str, str]]:
    issues: list[tuple[str, str]] = []
    for item in error.errors():
        loc = item.get("loc", ())
        issues.append((str(loc[0]) if loc else "", item.get("msg", "")))
    return issues


async def validate_frontmatter(validator: Validator, data: Mapping[str, Any]) -> dict[str, Any]:
    """Validate and transform front matter.

    Returns JSON-compatible data. Async validators are awaited, so they
    may coerce values or look things up remotely.

    Raises:
        SchemaError: With one ``(field, message)`` issue per failure.
    """
    try:
        if isinstance(validator, type) and issubclass(validator, BaseModel):
            return validator.model_validate(dict(data)).model_dump(mode="json")
        if isinstance(validator, TypeAdapter):
            return validator.dump_python(validator.validate_python(dict(data)), mode="json")

        result = validator(dict(data))
        if inspect.isawaitable(result):
            result = await result
    except ValidationError as e:
        raise SchemaError(_issues_from_pydantic(e)) from e
    except ValueError as e:
        raise SchemaError([("", str(e))]) from e

    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if not isinstance(result, Mapping):
        raise SchemaError([("", f"validator returned {type(result).__name__}, expected a mapping")])
    return to_json_data(result)
