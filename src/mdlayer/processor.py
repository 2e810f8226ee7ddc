"""Document type processor.

Compiles one document type's file set end to end:
  discover → fingerprint → (cache hit | read → validate → bundle → write)
  → collection index + import module

Files are processed strictly one after another. Discovery order fixes the
order of both collection artifacts, and the shared cache is mutated in
place, so nothing here may fan out.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiofiles

from mdlayer.cache import CacheEntry, compute_fingerprint
from mdlayer.discovery import find_files
from mdlayer.exceptions import (
    BundleError,
    ConfigError,
    DocumentValidationError,
    SchemaError,
)
from mdlayer.formats import resolve_format
from mdlayer.frontmatter import get_yaml_error_line, parse_matter
from mdlayer.git import get_git_info
from mdlayer.naming import get_document_id_and_slug
from mdlayer.output import write_collection, write_document
from mdlayer.schemas import SchemaContext, resolve_schema, to_json_data, validate_frontmatter
from mdlayer.types import BundleRequest, Document, DocumentBody, GenerationSummary

if TYPE_CHECKING:
    from mdlayer.config import DocumentDefinition, ResolvedConfig

__all__ = ["compile_document", "generate_documents"]

logger = logging.getLogger(__name__)


async def compile_document(
    path: Path,
    definition: DocumentDefinition,
    config: ResolvedConfig,
    definition_dir: Path,
) -> Document:
    """Read, validate and bundle a single content file.

    Raises:
        DocumentValidationError: If the front matter fails its schema.
        FormatDetectionError: If the body format cannot be determined.
        BundleError: If the bundler reports an error.
    """
    async with aiofiles.open(path, encoding="utf-8") as f:
        contents = await f.read()

    parsed = parse_matter(contents, str(path))
    data: dict[str, Any] = parsed.data

    context = SchemaContext(
        type=definition.type,
        path=path,
        contents=contents,
        frontmatter=parsed.data,
        assets=config.assets,
    )
    validator = resolve_schema(definition.schema, context)
    if validator is None:
        # YAML dates and timestamps become ISO strings
        data = to_json_data(parsed.data)
    else:
        try:
            data = await validate_frontmatter(validator, parsed.data)
        except SchemaError as e:
            rel = path.relative_to(config.root_dir) if path.is_relative_to(config.root_dir) else path
            raise DocumentValidationError(
                f"Invalid front matter in '{definition.type}' document {rel}: {e}",
                path=str(path),
                field=e.field,
                line=get_yaml_error_line(parsed.matter, e.field),
                column=0,
            ) from e

    fmt = resolve_format(path, definition.format, md_as_mdoc=config.md_as_mdoc)

    result = await config.bundler.bundle(
        BundleRequest(
            path=str(path),
            format=fmt,
            contents=parsed.body,
            frontmatter=data,
            options=config.bundler_options,
        )
    )
    if not result.ok:
        first = result.errors[0]
        location = f" (line {first.line})" if first.line else ""
        raise BundleError(f"{first.text}{location}", path=str(path))

    doc_id, slug = get_document_id_and_slug(path.relative_to(definition_dir).as_posix())
    return Document(
        id=doc_id,
        type=definition.type,
        slug=slug,
        data=data,
        body=DocumentBody(format=fmt, raw=parsed.body, code=result.code),
        computed=await get_git_info(path, definition.git),
    )


async def generate_documents(
    definition: DocumentDefinition,
    config: ResolvedConfig,
) -> GenerationSummary:
    """Compile every document of one type and write its artifacts.

    Cache hits are reused verbatim; misses are compiled, written and
    stored back into ``config.cache``. Any content error aborts before the
    collection artifacts are written.

    Raises:
        ConfigError: If the definition has no patterns.
    """
    if not definition.patterns:
        raise ConfigError(f"Definition '{definition.type}' must declare at least one pattern")

    definition_dir = config.content_dir / definition.type
    type_dir = config.output.generated / definition.type
    files = find_files(definition_dir, definition.patterns, gitignore_dirs=(config.root_dir,))
    logger.debug("Processing %d file(s) for '%s'", len(files), definition.type)

    cached = 0
    generated = 0
    documents: list[tuple[str, dict[str, Any]]] = []

    for path in files:
        key = str(path)
        fingerprint = compute_fingerprint(path)
        if config.cache.is_fresh(key, fingerprint, definition.type):
            doc_id, _ = get_document_id_and_slug(path.relative_to(definition_dir).as_posix())
            documents.append((doc_id, config.cache[key].document))
            cached += 1
            continue

        document = await compile_document(path, definition, config, definition_dir)
        data = document.to_dict()
        await write_document(type_dir, document.id, data)

        config.cache.set(key, CacheEntry(hash=fingerprint, type=definition.type, document=data))
        documents.append((document.id, data))
        generated += 1
        logger.debug("Generated %s", document.id)

    await write_collection(type_dir, definition.type, documents)

    return GenerationSummary(cached=cached, generated=generated, total=len(documents))
