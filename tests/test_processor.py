"""Tests for mdlayer.processor module."""

from __future__ import annotations

import datetime
import json

import pytest
from helpers import write_doc
from pydantic import BaseModel

from mdlayer.cache import CacheEntry
from mdlayer.config import DocumentDefinition
from mdlayer.exceptions import (
    BundleError,
    ConfigError,
    DocumentValidationError,
    FormatDetectionError,
)
from mdlayer.processor import compile_document, generate_documents
from mdlayer.types import DocumentFormat


class Post(BaseModel):
    title: str
    views: int = 0


def _blog(config):
    return config.content_dir / "blog"


class TestCompileDocument:
    @pytest.mark.asyncio
    async def test_raw_frontmatter_without_schema(self, make_config):
        config = make_config()
        path = _blog(config) / "alpha.md"
        doc = await compile_document(path, config.definitions["blog"], config, _blog(config))

        assert doc.id == "alpha.md"
        assert doc.type == "blog"
        assert doc.slug == "alpha"
        assert doc.data == {"title": "Alpha", "views": "10"}
        assert doc.body.format is DocumentFormat.MARKDOWN
        assert doc.body.raw == "# Alpha\n\nFirst post.\n"
        assert doc.computed == {}

    @pytest.mark.asyncio
    async def test_schema_transforms_data(self, make_config):
        config = make_config(DocumentDefinition(type="blog", schema=Post))
        path = _blog(config) / "beta.md"
        doc = await compile_document(path, config.definitions["blog"], config, _blog(config))
        assert doc.data == {"title": "Beta", "views": 20}

    @pytest.mark.asyncio
    async def test_nested_id_and_slug(self, make_config):
        config = make_config()
        path = _blog(config) / "nested" / "gamma.md"
        doc = await compile_document(path, config.definitions["blog"], config, _blog(config))
        assert doc.id == "nested/gamma.md"
        assert doc.slug == "nested/gamma"

    @pytest.mark.asyncio
    async def test_validation_error_location(self, make_config):
        config = make_config(DocumentDefinition(type="blog", schema=Post))
        path = write_doc(_blog(config) / "bad.md", {"views": 1, "title": 5})

        with pytest.raises(DocumentValidationError) as exc_info:
            await compile_document(path, config.definitions["blog"], config, _blog(config))

        err = exc_info.value
        assert err.field == "title"
        assert err.path == str(path)
        assert err.line == 3
        assert err.column == 0
        assert err.location.endswith("bad.md:3:0")

    @pytest.mark.asyncio
    async def test_missing_field_has_no_line(self, make_config):
        config = make_config(DocumentDefinition(type="blog", schema=Post))
        path = write_doc(_blog(config) / "bad.md", {"views": 1})

        with pytest.raises(DocumentValidationError) as exc_info:
            await compile_document(path, config.definitions["blog"], config, _blog(config))
        assert exc_info.value.field == "title"
        assert exc_info.value.line == 0

    @pytest.mark.asyncio
    async def test_md_as_mdoc(self, make_config):
        config = make_config(md_as_mdoc=True)
        path = write_doc(_blog(config) / "hello.md", {"title": "World"}, "Hello {{ title }}\n")
        doc = await compile_document(path, config.definitions["blog"], config, _blog(config))
        assert doc.body.format is DocumentFormat.MARKDOC
        assert doc.body.code == "Hello World\n"
        assert doc.body.raw == "Hello {{ title }}\n"

    @pytest.mark.asyncio
    async def test_format_override(self, make_config):
        config = make_config(DocumentDefinition(type="blog", format="mdx"))
        path = write_doc(_blog(config) / "broken.md", {"title": "X"}, "text {open\n")
        with pytest.raises(BundleError, match="broken.md"):
            await compile_document(path, config.definitions["blog"], config, _blog(config))

    @pytest.mark.asyncio
    async def test_unknown_extension(self, make_config):
        config = make_config(DocumentDefinition(type="blog", patterns=("**/*.txt",)))
        path = write_doc(_blog(config) / "notes.txt", {"title": "X"})
        with pytest.raises(FormatDetectionError):
            await compile_document(path, config.definitions["blog"], config, _blog(config))


class TestGenerateDocuments:
    @pytest.mark.asyncio
    async def test_first_pass_generates_all(self, make_config):
        config = make_config()
        summary = await generate_documents(config.definitions["blog"], config)

        assert (summary.generated, summary.cached, summary.total) == (3, 0, 3)
        type_dir = config.output.generated / "blog"
        assert (type_dir / "alpha.md.json").is_file()
        assert (type_dir / "nested__gamma.md.json").is_file()
        assert len(config.cache) == 3

    @pytest.mark.asyncio
    async def test_artifact_shape(self, make_config):
        config = make_config()
        await generate_documents(config.definitions["blog"], config)
        data = json.loads(
            (config.output.generated / "blog" / "alpha.md.json").read_text(encoding="utf-8")
        )
        assert data["_id"] == "alpha.md"
        assert data["_type"] == "blog"
        assert data["slug"] == "alpha"
        assert data["title"] == "Alpha"
        assert data["body"]["format"] == "md"

    @pytest.mark.asyncio
    async def test_second_pass_hits_cache(self, make_config):
        config = make_config()
        await generate_documents(config.definitions["blog"], config)
        summary = await generate_documents(config.definitions["blog"], config)
        assert (summary.generated, summary.cached) == (0, 3)

    @pytest.mark.asyncio
    async def test_type_mismatch_is_miss(self, make_config):
        config = make_config()
        await generate_documents(config.definitions["blog"], config)
        for key in list(config.cache):
            entry = config.cache.get(key)
            config.cache.set(key, CacheEntry(hash=entry.hash, type="other", document={}))

        summary = await generate_documents(config.definitions["blog"], config)
        assert summary.generated == 3

    @pytest.mark.asyncio
    async def test_collection_order(self, make_config):
        config = make_config()
        await generate_documents(config.definitions["blog"], config)
        index = json.loads(
            (config.output.generated / "blog" / "index.json").read_text(encoding="utf-8")
        )
        assert [d["_id"] for d in index] == ["alpha.md", "beta.md", "nested/gamma.md"]

    @pytest.mark.asyncio
    async def test_error_aborts_before_collection(self, make_config):
        config = make_config(DocumentDefinition(type="blog", schema=Post))
        write_doc(_blog(config) / "aaa.md", {"views": 1})
        with pytest.raises(DocumentValidationError):
            await generate_documents(config.definitions["blog"], config)
        assert not (config.output.generated / "blog" / "index.json").exists()

    @pytest.mark.asyncio
    async def test_empty_patterns(self, make_config):
        config = make_config(DocumentDefinition(type="blog", patterns=()))
        with pytest.raises(ConfigError, match="at least one pattern"):
            await generate_documents(config.definitions["blog"], config)

    @pytest.mark.asyncio
    async def test_missing_type_dir_writes_empty_collection(self, make_config):
        config = make_config(DocumentDefinition(type="pages"))
        summary = await generate_documents(config.definitions["pages"], config)
        assert summary.total == 0
        index = config.output.generated / "pages" / "index.json"
        assert json.loads(index.read_text(encoding="utf-8")) == []

    @pytest.mark.asyncio
    async def test_yaml_dates_written_as_iso_strings(self, make_config):
        config = make_config()
        write_doc(
            _blog(config) / "dated.md",
            {
                "title": "Dated",
                "date": datetime.date(2024, 1, 15),
                "at": datetime.datetime(2024, 1, 15, 9, 30),
            },
        )

        await generate_documents(config.definitions["blog"], config)

        data = json.loads(
            (config.output.generated / "blog" / "dated.md.json").read_text(encoding="utf-8")
        )
        assert data["date"] == "2024-01-15"
        assert data["at"] == "2024-01-15T09:30:00"
        config.cache.save()
        assert config.cache.path.is_file()
