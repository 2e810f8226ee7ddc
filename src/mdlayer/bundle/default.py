"""Built-in bundler.

- ``md``: whitespace-normalized markdown.
- ``mdoc``: the body is rendered as a Jinja2 template with the front
  matter (plus configured ``variables``) in scope; undefined names are
  errors.
- ``mdx``: expression braces outside code must balance.

This bundler is 100% deterministic and does no I/O.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import jinja2

from mdlayer.bundle.base import BaseBundler
from mdlayer.types import BundleMessage, BundleRequest, BundleResult, DocumentFormat

__all__ = ["DefaultBundler"]

logger = logging.getLogger(__name__)

# Matches 3+ consecutive blank lines (to collapse to 2)
_MULTI_BLANK_RE = re.compile(r"\n{3,}")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_INLINE_CODE_RE = re.compile(r"`[^`]*`")


def _normalize_whitespace(text: str) -> str:
    """Strip trailing whitespace per line, collapse blank runs, trim the ends."""
    lines = [line.rstrip() for line in text.split("\n")]
    return _MULTI_BLANK_RE.sub("\n\n", "\n".join(lines)).strip() + "\n"


def _check_expression_braces(text: str) -> list[BundleMessage]:
    """Report unbalanced ``{``/``}`` outside fenced and inline code."""
    errors: list[BundleMessage] = []
    depth = 0
    open_line = 0
    in_fence = False
    for lineno, line in enumerate(text.split("\n"), start=1):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        for char in _INLINE_CODE_RE.sub("", line):
            if char == "{":
                if depth == 0:
                    open_line = lineno
                depth += 1
            elif char == "}":
                if depth == 0:
                    errors.append(BundleMessage(text="Unexpected closing brace '}'", line=lineno))
                    continue
                depth -= 1
    if depth:
        errors.append(BundleMessage(text="Unclosed expression brace '{'", line=open_line))
    return errors


class DefaultBundler(BaseBundler):
    """Bundler for ``md``, ``mdx`` and ``mdoc`` bodies."""

    def __init__(self, *, variables: dict[str, Any] | None = None, normalize: bool = True) -> None:
        self.variables = dict(variables or {})
        self.normalize = normalize
        self._env = jinja2.Environment(
            autoescape=False,
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    async def bundle(self, request: BundleRequest) -> BundleResult:
        logger.debug("Bundling %s as %s", request.path, request.format.value)

        if request.format is DocumentFormat.MARKDOC:
            return self._render_markdoc(request)

        if request.format is DocumentFormat.MDX:
            errors = _check_expression_braces(request.contents)
            if errors:
                return BundleResult(errors=tuple(errors))

        return BundleResult(code=self._finish(request.contents))

    def _render_markdoc(self, request: BundleRequest) -> BundleResult:
        context = {**self.variables, **request.frontmatter}
        try:
            rendered = self._env.from_string(request.contents).render(**context)
        except jinja2.TemplateSyntaxError as e:
            return BundleResult(errors=(BundleMessage(text=e.message or str(e), line=e.lineno),))
        except jinja2.UndefinedError as e:
            return BundleResult(errors=(BundleMessage(text=str(e)),))
        return BundleResult(code=self._finish(rendered))

    def _finish(self, text: str) -> str:
        return _normalize_whitespace(text) if self.normalize else text
