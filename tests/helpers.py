"""Helpers shared by the mdlayer tests."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from pathlib import Path

_BASE_MTIME_NS = 1_700_000_000 * 10**9


def write_doc(path: Path, frontmatter: dict[str, Any] | None, body: str = "Body text.\n") -> Path:
    """Write a content file with YAML front matter and a deterministic mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if frontmatter is None:
        text = body
    else:
        text = "---\n" + yaml.safe_dump(frontmatter, sort_keys=False) + "---\n" + body
    previous = path.stat().st_mtime_ns if path.exists() else _BASE_MTIME_NS
    path.write_text(text, encoding="utf-8")
    # bump explicitly so that filesystems with coarse timestamps still change
    bumped = previous + 10**9
    os.utime(path, ns=(bumped, bumped))
    return path


class FakeWatcher:
    """Stands in for watchfiles: each call yields the next scripted batches.

    A batch is a set of ``(Change, path)`` tuples, or a zero-argument
    callable returning one (to run side effects just before delivery).
    """

    def __init__(self, *scripts: list[Any]) -> None:
        self.scripts = list(scripts)
        self.calls: list[list[Path]] = []

    def __call__(self, paths, watch_filter, stop_event) -> AsyncIterator[set]:
        self.calls.append(list(paths))
        index = len(self.calls) - 1
        batches = self.scripts[index] if index < len(self.scripts) else []

        async def _gen() -> AsyncIterator[set]:
            for batch in batches:
                if callable(batch):
                    batch = batch()
                yield {item for item in batch if watch_filter(*item)}

        return _gen()


def batch(*items: Any) -> Callable[[], set]:
    return lambda: set(items)
