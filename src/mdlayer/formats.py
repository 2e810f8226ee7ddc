"""Document format detection by file extension.

Maps a content file to its body format. An explicit override always wins;
otherwise the extension decides.
"""

from __future__ import annotations

import logging
from pathlib import PurePath

from mdlayer.exceptions import FormatDetectionError
from mdlayer.types import DocumentFormat

__all__ = [
    "DETECT",
    "MARKDOWN_EXTENSIONS",
    "detect_format",
    "resolve_format",
]

logger = logging.getLogger(__name__)

DETECT = "detect"

MARKDOWN_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".md",
        ".markdown",
        ".mdown",
        ".mkdn",
        ".mkd",
        ".mdwn",
        ".mkdown",
        ".ron",
    }
)

_EXTENSION_MAP: dict[str, DocumentFormat] = {
    **{ext: DocumentFormat.MARKDOWN for ext in MARKDOWN_EXTENSIONS},
    ".mdx": DocumentFormat.MDX,
    ".mdoc": DocumentFormat.MARKDOC,
}


def detect_format(
    path: str | PurePath,
    override: DocumentFormat | str = DETECT,
) -> DocumentFormat | FormatDetectionError:
    """Return the body format for ``path``, or the detection error.

    The error is returned rather than raised so that callers decide the
    policy; see :func:`resolve_format` for the raising variant.
    """
    if override != DETECT:
        return DocumentFormat(override)

    ext = PurePath(path).suffix
    fmt = _EXTENSION_MAP.get(ext)
    if fmt is None:
        logger.debug("No format for extension %r (%s)", ext, path)
        return FormatDetectionError(str(path))
    return fmt


def resolve_format(
    path: str | PurePath,
    override: DocumentFormat | str = DETECT,
    *,
    md_as_mdoc: bool = False,
) -> DocumentFormat:
    """Resolve the format for ``path``, raising on detection failure.

    Plain markdown is promoted to Markdoc when ``md_as_mdoc`` is set.
    """
    result = detect_format(path, override)
    if isinstance(result, FormatDetectionError):
        raise result
    if result is DocumentFormat.MARKDOWN and md_as_mdoc:
        return DocumentFormat.MARKDOC
    return result
