"""Tests for mdlayer.watch module."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from helpers import FakeWatcher, batch, write_doc
from watchfiles import Change

from mdlayer.config import DocumentDefinition
from mdlayer.generate import Orchestrator
from mdlayer.types import BundleResult
from mdlayer.watch import ChangeEvent, ContentFilter, WatchLoop, WatchOutcome, WatchState


async def _orchestrator(config) -> Orchestrator:
    orchestrator = Orchestrator(config)
    await orchestrator.prepare()
    await orchestrator.run_pass()
    return orchestrator


class TestContentFilter:
    def test_content_file_passes(self, tmp_path: Path):
        f = ContentFilter(tmp_path, [])
        (tmp_path / "post.md").write_text("x", encoding="utf-8")
        assert f(Change.modified, str(tmp_path / "post.md"))

    def test_config_file_passes_outside_content(self, tmp_path: Path):
        config = tmp_path / "mdlayer.toml"
        f = ContentFilter(tmp_path / "content", [config])
        assert f(Change.modified, str(config))

    def test_outside_content_rejected(self, tmp_path: Path):
        f = ContentFilter(tmp_path / "content", [])
        assert not f(Change.modified, str(tmp_path / "elsewhere.md"))

    @pytest.mark.parametrize("name", [".draft.md", "_partial.md", "_drafts/post.md", ".git/HEAD"])
    def test_hidden_rejected(self, tmp_path: Path, name: str):
        f = ContentFilter(tmp_path, [])
        assert not f(Change.added, str(tmp_path / name))

    def test_directory_events_rejected(self, tmp_path: Path):
        (tmp_path / "blog" / "old").mkdir(parents=True)
        f = ContentFilter(tmp_path, [])
        (tmp_path / "blog" / "new").mkdir()

        assert not f(Change.added, str(tmp_path / "blog" / "new"))
        assert not f(Change.deleted, str(tmp_path / "blog" / "old"))
        assert not f(Change.deleted, str(tmp_path / "blog" / "new"))

    def test_file_deletion_kept(self, tmp_path: Path):
        (tmp_path / "blog").mkdir()
        f = ContentFilter(tmp_path, [])
        assert f(Change.deleted, str(tmp_path / "blog" / "gone.md"))

    def test_empty_path_rejected(self, tmp_path: Path):
        assert not ContentFilter(tmp_path, [])(Change.modified, "")


class TestHandle:
    @pytest.mark.asyncio
    async def test_content_change_invalidates_only_that_path(self, make_config):
        config = make_config()
        orchestrator = await _orchestrator(config)
        loop = WatchLoop(orchestrator)
        beta = config.content_dir / "blog" / "beta.md"

        outcome = await loop.handle([ChangeEvent(path=beta, kind="modified")])

        assert outcome is None
        assert loop.state is WatchState.WATCHING
        summary = orchestrator.last_summary
        assert (summary.generated, summary.cached) == (1, 2)

    @pytest.mark.asyncio
    async def test_config_change_requests_restart(self, make_config):
        config = make_config()
        orchestrator = await _orchestrator(config)
        loop = WatchLoop(orchestrator)

        outcome = await loop.handle(
            [
                ChangeEvent(path=config.content_dir / "blog" / "beta.md", kind="modified"),
                ChangeEvent(path=config.config_path, kind="modified"),
            ]
        )

        assert outcome is WatchOutcome.RESTART
        assert loop.state is WatchState.RESTARTING
        # no content was invalidated for the restart batch
        assert len(config.cache) == 3

    @pytest.mark.asyncio
    async def test_deleted_file_leaves_collection(self, make_config):
        config = make_config()
        orchestrator = await _orchestrator(config)
        loop = WatchLoop(orchestrator)
        alpha = config.content_dir / "blog" / "alpha.md"
        alpha.unlink()

        await loop.handle([ChangeEvent(path=alpha, kind="deleted")])

        assert str(alpha) not in config.cache
        index = json.loads(
            (config.output.generated / "blog" / "index.json").read_text(encoding="utf-8")
        )
        assert [d["_id"] for d in index] == ["beta.md", "nested/gamma.md"]

    @pytest.mark.asyncio
    async def test_content_error_is_logged_and_loop_survives(
        self, make_config, schema_module, caplog: pytest.LogCaptureFixture
    ):
        reference, _ = schema_module()
        config = make_config(DocumentDefinition(type="blog", schema=reference))
        orchestrator = await _orchestrator(config)
        loop = WatchLoop(orchestrator)
        beta = write_doc(config.content_dir / "blog" / "beta.md", {"views": 2})

        with caplog.at_level(logging.ERROR, logger="mdlayer"):
            outcome = await loop.handle([ChangeEvent(path=beta, kind="modified")])

        assert outcome is None
        assert loop.state is WatchState.WATCHING
        assert "beta.md" in caplog.text

        write_doc(beta, {"title": "Beta fixed", "views": 2})
        await loop.handle([ChangeEvent(path=beta, kind="modified")])
        assert orchestrator.last_summary.generated == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_is_logged(
        self, make_config, caplog: pytest.LogCaptureFixture
    ):
        config = make_config()
        orchestrator = await _orchestrator(config)

        class Exploding:
            async def bundle(self, request) -> BundleResult:
                raise RuntimeError("boom")

        config.bundler = Exploding()
        loop = WatchLoop(orchestrator)
        beta = config.content_dir / "blog" / "beta.md"

        with caplog.at_level(logging.ERROR, logger="mdlayer"):
            await loop.handle([ChangeEvent(path=beta, kind="modified")])

        assert "Regeneration failed" in caplog.text
        assert loop.state is WatchState.WATCHING
        assert not orchestrator.busy


class TestRun:
    @pytest.mark.asyncio
    async def test_stream_end_stops(self, make_config):
        config = make_config()
        orchestrator = await _orchestrator(config)
        watcher = FakeWatcher([])
        loop = WatchLoop(orchestrator, watch_factory=watcher)

        assert await loop.run() is WatchOutcome.STOPPED
        assert loop.state is WatchState.STOPPED
        assert watcher.calls == [[config.content_dir, config.config_path]]

    @pytest.mark.asyncio
    async def test_filtered_batch_is_ignored(self, make_config):
        config = make_config()
        orchestrator = await _orchestrator(config)
        hidden = config.content_dir / "blog" / "_draft.md"
        watcher = FakeWatcher([batch((Change.added, str(hidden)))])
        loop = WatchLoop(orchestrator, watch_factory=watcher)

        await loop.run()

        assert orchestrator.last_summary.generated == 3

    @pytest.mark.asyncio
    async def test_restart_stops_consuming(self, make_config):
        config = make_config()
        orchestrator = await _orchestrator(config)
        beta = config.content_dir / "blog" / "beta.md"
        watcher = FakeWatcher(
            [
                batch((Change.modified, str(config.config_path))),
                batch((Change.modified, str(beta))),
            ]
        )
        loop = WatchLoop(orchestrator, watch_factory=watcher)

        assert await loop.run() is WatchOutcome.RESTART
        assert orchestrator.last_summary.generated == 3
