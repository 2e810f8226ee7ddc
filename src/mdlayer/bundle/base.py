"""Abstract base class for body bundlers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mdlayer.types import BundleRequest, BundleResult

__all__ = ["BaseBundler"]

logger = logging.getLogger(__name__)


class BaseBundler(ABC):
    """Base class for all bundlers.

    A bundler compiles a document body into portable code. Problems in the
    content are reported through ``BundleResult.errors`` rather than
    raised; the caller treats the first one as fatal.
    """

    @abstractmethod
    async def bundle(self, request: BundleRequest) -> BundleResult:
        """Compile one document body.

        Args:
            request: Format, raw body, bundler options and front matter.

        Returns:
            BundleResult with ``code`` on success, ``errors`` otherwise.
        """
