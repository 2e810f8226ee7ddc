"""Generation orchestrator.

Resolves configuration, prepares output directories, runs the document
type processor for every declared type, flushes assets, persists the
cache and, in development mode, hands over to the watch loop.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from mdlayer.assets import output_assets
from mdlayer.config import resolve_config
from mdlayer.exceptions import MdlayerError
from mdlayer.output import write_entry_files
from mdlayer.processor import generate_documents
from mdlayer.types import GenerationMode, GenerationSummary
from mdlayer.watch import WatchLoop, WatchOutcome, default_watch_factory

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Sequence

    from mdlayer.config import ResolvedConfig

__all__ = ["Orchestrator", "generate"]

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs generation passes for one resolved configuration.

    Owns the single-flight lock: a pass never starts while another one
    (initial or watch-triggered) is still running.

    Usage::

        orchestrator = Orchestrator(resolve_config(mode, config_path))
        await orchestrator.prepare()
        summary = await orchestrator.run_pass()
    """

    def __init__(self, config: ResolvedConfig) -> None:
        self.config = config
        self.last_summary = GenerationSummary()
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def prepare(self) -> None:
        """Create output directories and write the static entry files."""
        self.config.output.assets.mkdir(parents=True, exist_ok=True)
        self.config.output.generated.mkdir(parents=True, exist_ok=True)
        await write_entry_files(self.config)

    async def run_pass(self) -> GenerationSummary:
        """Generate every declared type, then flush assets and the cache."""
        async with self._lock:
            per_type: dict[str, GenerationSummary] = {}
            for doc_type, definition in self.config.definitions.items():
                per_type[doc_type] = await generate_documents(definition, self.config)

            output_assets(self.config.assets, self.config.output.assets)
            self.config.cache.save()

            summary = sum(per_type.values(), GenerationSummary())
            logger.info(
                "Generated %d documents (%d from cache) in %s",
                summary.total,
                summary.cached,
                self.config.output.root,
            )
            self.last_summary = summary
            return summary


async def _wait_for_change(
    paths: Sequence[Path],
    watch_factory: Callable[..., AsyncIterator[object]],
    stop_event: asyncio.Event,
) -> bool:
    """Block until one of ``paths`` changes. False if stopped first."""
    watched = frozenset(paths)

    def only_dependencies(change: object, path: str) -> bool:
        return Path(path) in watched

    changes = watch_factory([p for p in paths if p.exists()], only_dependencies, stop_event)
    try:
        async for _ in changes:
            return True
    finally:
        aclose = getattr(changes, "aclose", None)
        if aclose is not None:
            await aclose()
    return False


async def generate(
    mode: GenerationMode,
    config_path: Path,
    *,
    watch_factory: Callable[..., AsyncIterator[object]] | None = None,
    stop_event: asyncio.Event | None = None,
) -> GenerationSummary:
    """Run generation; in development mode keep watching until stopped.

    Each configuration change restarts from scratch: the config is
    re-resolved and the cache reloaded from disk. Errors in the very first
    incarnation propagate; after a restart they are logged and the loop
    waits for the next change.
    """
    watch_factory = watch_factory or default_watch_factory
    stop_event = stop_event or asyncio.Event()
    dependencies: tuple[Path, ...] = (config_path.resolve(),)
    restarting = False
    summary = GenerationSummary()

    while True:
        try:
            config = resolve_config(mode, config_path)
        except MdlayerError as e:
            if not restarting:
                raise
            logger.error("Cannot reload configuration: %s", e)
            if await _wait_for_change(dependencies, watch_factory, stop_event):
                continue
            return summary

        dependencies = config.config_dependencies
        orchestrator = Orchestrator(config)
        try:
            await orchestrator.prepare()
            summary = await orchestrator.run_pass()
        except MdlayerError as e:
            if not restarting:
                raise
            logger.error("%s", e)
        except Exception:
            if not restarting:
                raise
            logger.exception("Generation failed after restart")

        if mode is not GenerationMode.DEVELOPMENT:
            return summary

        loop = WatchLoop(orchestrator, watch_factory=watch_factory, stop_event=stop_event)
        outcome = await loop.run()
        summary = orchestrator.last_summary
        if outcome is not WatchOutcome.RESTART:
            return summary
        restarting = True
