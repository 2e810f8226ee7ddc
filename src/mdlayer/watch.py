"""Watch loop for incremental regeneration on content changes.

Monitors the content directory and every configuration dependency file.
A content change invalidates the cache entry for that exact path and
re-runs the generation pass, so only the edited file recompiles. A
configuration change ends the loop with :attr:`WatchOutcome.RESTART`
and the caller rebuilds everything from a fresh config.

States: IDLE → WATCHING → (REGENERATING | RESTARTING) → WATCHING,
STOPPED once the change stream ends.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from watchfiles import Change, awatch

from mdlayer.exceptions import MdlayerError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Sequence

    from mdlayer.generate import Orchestrator

__all__ = [
    "ChangeEvent",
    "ContentFilter",
    "WatchLoop",
    "WatchOutcome",
    "WatchState",
    "default_watch_factory",
]

logger = logging.getLogger(__name__)

# Settle window so that files still being written do not trigger a pass.
DEBOUNCE_MS = 200
STEP_MS = 50

_HIDDEN_PREFIXES = (".", "_")

RawChanges = set[tuple[Change, str]]


class WatchState(str, Enum):
    IDLE = "idle"
    WATCHING = "watching"
    REGENERATING = "regenerating"
    RESTARTING = "restarting"
    STOPPED = "stopped"


class WatchOutcome(str, Enum):
    RESTART = "restart"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A file change detected by the watcher.

    Attributes:
        path: Absolute path to the changed file.
        kind: Type of filesystem change.
    """

    path: Path
    kind: Literal["created", "modified", "deleted"]


# Mapping from watchfiles Change enum to our kind literals.
_CHANGE_KIND_MAP: dict[Change, Literal["created", "modified", "deleted"]] = {
    Change.added: "created",
    Change.modified: "modified",
    Change.deleted: "deleted",
}


class ContentFilter:
    """watchfiles filter: config files always pass, content files unless hidden.

    Directory events are dropped. A removed path no longer exists, so the
    filter remembers the directories it has seen to recognize their
    deletion.
    """

    def __init__(self, content_dir: Path, config_files: Sequence[Path]) -> None:
        self.content_dir = content_dir
        self.config_files = frozenset(config_files)
        self._dirs = {Path(root) for root, _, _ in os.walk(content_dir)}

    def __call__(self, change: Change, path: str) -> bool:
        if not path:
            return False
        p = Path(path)
        if p in self.config_files:
            return True
        try:
            rel = p.relative_to(self.content_dir)
        except ValueError:
            return False
        if any(part.startswith(_HIDDEN_PREFIXES) for part in rel.parts):
            return False
        if change == Change.deleted:
            if p in self._dirs:
                self._dirs.discard(p)
                return False
            return True
        if p.is_dir():
            self._dirs.add(p)
            return False
        return True


def default_watch_factory(
    paths: Sequence[Path],
    watch_filter: Callable[[Change, str], bool],
    stop_event: asyncio.Event,
) -> AsyncIterator[RawChanges]:
    """Debounced change batches from watchfiles."""
    return awatch(
        *paths,
        watch_filter=watch_filter,
        debounce=DEBOUNCE_MS,
        step=STEP_MS,
        stop_event=stop_event,
    )


class WatchLoop:
    """Drives watch-triggered regenerations for one config incarnation.

    Any error raised by a regeneration is logged and the loop keeps
    running, so a single bad edit never kills the process.
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        *,
        watch_factory: Callable[..., AsyncIterator[RawChanges]] | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.state = WatchState.IDLE
        self._watch_factory = watch_factory or default_watch_factory
        self._stop_event = stop_event or asyncio.Event()

    def _watched_paths(self) -> list[Path]:
        config = self.orchestrator.config
        paths = [config.content_dir, *config.config_dependencies]
        existing = [p for p in paths if p.exists()]
        for p in paths:
            if p not in existing:
                logger.warning("Not watching %s (does not exist)", p)
        return existing

    def _to_events(self, raw_changes: RawChanges) -> list[ChangeEvent]:
        events = {
            ChangeEvent(path=Path(path_str), kind=_CHANGE_KIND_MAP.get(change, "modified"))
            for change, path_str in raw_changes
            if path_str
        }
        return sorted(events, key=lambda e: str(e.path))

    async def run(self) -> WatchOutcome:
        """Watch until stopped or until a configuration file changes."""
        config = self.orchestrator.config
        watch_filter = ContentFilter(config.content_dir, config.config_dependencies)
        changes = self._watch_factory(self._watched_paths(), watch_filter, self._stop_event)

        self.state = WatchState.WATCHING
        logger.info("Watching for changes in '%s'", config.content_dir)
        try:
            async for raw_changes in changes:
                events = self._to_events(raw_changes)
                if not events:
                    continue
                if await self.handle(events) is WatchOutcome.RESTART:
                    return WatchOutcome.RESTART
        finally:
            aclose = getattr(changes, "aclose", None)
            if aclose is not None:
                await aclose()

        self.state = WatchState.STOPPED
        return WatchOutcome.STOPPED

    async def handle(self, events: Sequence[ChangeEvent]) -> WatchOutcome | None:
        """React to one debounced batch of changes.

        Returns :attr:`WatchOutcome.RESTART` when a configuration
        dependency changed, ``None`` after an incremental regeneration.
        """
        config = self.orchestrator.config
        dependencies = set(config.config_dependencies)
        if any(event.path in dependencies for event in events):
            logger.info("Configuration changed, restarting...")
            self.state = WatchState.RESTARTING
            return WatchOutcome.RESTART

        self.state = WatchState.REGENERATING
        try:
            for event in events:
                logger.info("%s %s", event.path, event.kind)
                config.cache.invalidate(str(event.path))
            await self.orchestrator.run_pass()
        except MdlayerError as e:
            logger.error("%s", e)
        except Exception:
            logger.exception("Regeneration failed")
        finally:
            self.state = WatchState.WATCHING
        return None
