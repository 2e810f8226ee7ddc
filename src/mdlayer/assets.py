"""Asset handling for images referenced from front matter.

Schema helpers register source files here while documents validate; the
orchestrator then copies every registered file into ``{output}/assets/``
under a content-hashed name (``logo.png`` → ``logo.a1b2c3d4.png``).
"""

from __future__ import annotations

import hashlib
import logging
import shutil
from typing import TYPE_CHECKING

from pydantic import BaseModel

from mdlayer.exceptions import FilesystemError

if TYPE_CHECKING:
    from pathlib import Path

__all__ = ["AssetRegistry", "ImageAsset", "output_assets"]

logger = logging.getLogger(__name__)

_DIGEST_LENGTH = 8


class ImageAsset(BaseModel):
    """What an ``image()`` field resolves to in the document data."""

    src: str
    format: str
    size: int


class AssetRegistry:
    """Source files referenced by documents, keyed by output file name."""

    def __init__(self, base_url: str = "/assets") -> None:
        self.base_url = base_url.rstrip("/")
        self._sources: dict[str, Path] = {}
        self._pending: set[str] = set()

    def __len__(self) -> int:
        return len(self._sources)

    @property
    def pending(self) -> list[str]:
        """Output names registered since the last flush."""
        return sorted(self._pending)

    def register(self, source: Path) -> ImageAsset:
        """Register ``source`` and return its public description."""
        content = source.read_bytes()
        digest = hashlib.sha256(content).hexdigest()[:_DIGEST_LENGTH]
        name = f"{source.stem}.{digest}{source.suffix}"
        if name not in self._sources:
            self._sources[name] = source
            self._pending.add(name)
            logger.debug("Registered asset %s -> %s", source, name)
        return ImageAsset(
            src=f"{self.base_url}/{name}",
            format=source.suffix.lstrip(".").lower(),
            size=len(content),
        )

    def drain(self) -> list[tuple[str, Path]]:
        """Return and forget the pending ``(name, source)`` pairs."""
        items = [(name, self._sources[name]) for name in sorted(self._pending)]
        self._pending.clear()
        return items


def output_assets(assets: AssetRegistry, assets_dir: Path) -> list[Path]:
    """Copy newly registered assets into ``assets_dir``.

    Names carry a content digest, so a file already present is never
    copied again.

    Returns:
        Paths written during this call.
    """
    written: list[Path] = []
    for name, source in assets.drain():
        dest = assets_dir / name
        if dest.exists():
            continue
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, dest)
        except OSError as e:
            raise FilesystemError(f"Failed to copy asset {source} to {dest}: {e}") from e
        written.append(dest)

    if written:
        logger.info("Copied %d asset(s) to %s", len(written), assets_dir)
    return written
