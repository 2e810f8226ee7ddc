"""Bundlers: compile document bodies into portable code."""

from mdlayer.bundle.base import BaseBundler
from mdlayer.bundle.default import DefaultBundler
from mdlayer.registry import default_registry

__all__ = [
    "BaseBundler",
    "DefaultBundler",
]

default_registry.register("bundler", "default", lambda options: DefaultBundler(**options))
