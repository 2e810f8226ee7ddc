"""Front matter extraction for content files.

Splits a ``---`` delimited YAML block from the document body and parses it
with PyYAML.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

from mdlayer.exceptions import DocumentValidationError

__all__ = [
    "ParsedMatter",
    "get_yaml_error_line",
    "parse_matter",
    "split_frontmatter",
]

logger = logging.getLogger(__name__)

# a delimiter line: three dashes, optional trailing blanks, LF or CRLF
_DELIMITER_RE = re.compile(r"^---[ \t]*\r?$", re.MULTILINE)


@dataclass(frozen=True)
class ParsedMatter:
    """A content file split into its front matter and body."""

    matter: str
    data: dict[str, Any] = field(default_factory=dict)
    body: str = ""


def split_frontmatter(text: str) -> tuple[str | None, str]:
    """Split YAML front matter from the body.

    Front matter must start with a ``---`` line and end with a second
    ``---`` line. Both lines may carry trailing blanks and either line
    ending; a line such as ``---foo`` is ordinary text.

    Returns:
        (frontmatter_text or None, body_text)
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    opening = _DELIMITER_RE.match(text)
    if opening is None:
        return None, text
    closing = _DELIMITER_RE.search(text, opening.end())
    if closing is None:
        return None, text

    fm_text = text[opening.end() : closing.start()]
    fm_text = fm_text.removeprefix("\n").removesuffix("\n").removesuffix("\r")
    body_start = closing.end()
    if text.startswith("\n", body_start):
        body_start += 1

    return fm_text, text[body_start:]


def parse_matter(text: str, path: str = "") -> ParsedMatter:
    """Parse a content file into matter text, data mapping and body.

    Raises:
        DocumentValidationError: If the front matter is not valid YAML
            or is not a mapping.
    """
    fm_text, body = split_frontmatter(text)
    if fm_text is None:
        return ParsedMatter(matter="", data={}, body=body)

    try:
        data = yaml.safe_load(fm_text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        # +1 for the opening delimiter line
        line = mark.line + 2 if mark is not None else 0
        raise DocumentValidationError(
            f"Invalid YAML front matter in {path}: {e}",
            path=path,
            field="",
            line=line,
        ) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise DocumentValidationError(
            f"Front matter in {path} must be a mapping, got {type(data).__name__}",
            path=path,
            field="",
            line=1,
        )

    return ParsedMatter(matter=fm_text, data={str(k): v for k, v in data.items()}, body=body)


def get_yaml_error_line(matter: str, key: str) -> int:
    """Return the 1-based source line of ``key:`` given the raw front matter.

    The count includes the opening ``---`` delimiter, so the result is a
    line number in the content file itself.

    Only top-level keys are considered. Returns 0 when the key is absent
    (for example a required field that was never written).
    """
    if not key:
        return 0
    pattern = re.compile(rf"^{re.escape(key)}\s*:", re.MULTILINE)
    match = pattern.search(matter)
    if match is None:
        return 0
    return matter.count("\n", 0, match.start()) + 2
