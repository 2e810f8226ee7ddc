"""Git-derived document metadata (last updated date, authors)."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

    from mdlayer.config import GitOptions

__all__ = ["get_git_info"]

logger = logging.getLogger(__name__)

_SEPARATOR = "\t"


async def _git_log(path: Path) -> list[tuple[str, str]] | None:
    """Return ``(iso_date, author)`` per commit touching ``path``, newest first."""
    try:
        proc = await asyncio.create_subprocess_exec(
            "git",
            "log",
            "--follow",
            f"--format=%aI{_SEPARATOR}%an",
            "--",
            path.name,
            cwd=path.parent,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.debug("git unavailable for %s: %s", path, e)
        return None

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        logger.debug("git log failed for %s: %s", path, stderr.decode(errors="replace").strip())
        return None

    commits: list[tuple[str, str]] = []
    for line in stdout.decode("utf-8", errors="replace").splitlines():
        date, sep, author = line.partition(_SEPARATOR)
        if sep:
            commits.append((date, author))
    return commits


async def get_git_info(path: Path, options: GitOptions) -> dict[str, Any]:
    """Return ``_updated`` and/or ``_authors`` for ``path``.

    Files outside a repository or never committed produce no fields.
    """
    if not options.enabled:
        return {}

    commits = await _git_log(path)
    if not commits:
        return {}

    info: dict[str, Any] = {}
    if options.updated:
        info["_updated"] = commits[0][0]
    if options.authors:
        info["_authors"] = list(dict.fromkeys(author for _, author in commits))
    return info
