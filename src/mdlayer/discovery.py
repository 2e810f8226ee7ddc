"""Content file discovery.

Expands a definition's glob patterns under its content directory,
skipping dot files, ``_``-prefixed names and ``.gitignore``d paths.
Results are absolute paths in sorted order; that order fixes the order
of every collection artifact.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

__all__ = [
    "DEFAULT_PATTERNS",
    "IGNORE_MARKER",
    "IgnoreRule",
    "expand_braces",
    "find_files",
    "glob_to_regex",
    "load_ignore_rules",
    "matches_patterns",
]

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS: tuple[str, ...] = ("**/*.{md,mdoc,mdx}",)
IGNORE_MARKER = "_"

_BRACE_RE = re.compile(r"\{([^{}]*)\}")


@dataclass
class IgnoreRule:
    """A single ignore rule parsed from a ``.gitignore`` file."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return self.directory_only and rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def _build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def load_ignore_rules(directory: Path) -> list[IgnoreRule]:
    """Parse ``directory/.gitignore`` into rules. Missing file → no rules."""
    path = directory / ".gitignore"
    if not path.is_file():
        return []

    rules: list[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = _build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _is_ignored(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternations: ``*.{md,mdx}`` → ``[*.md, *.mdx]``."""
    match = _BRACE_RE.search(pattern)
    if match is None:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(head + option + tail))
    return expanded


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a brace-free glob into a regex over POSIX relative paths.

    ``**`` spans directories, ``*`` and ``?`` stay within one segment.
    """
    i, n = 0, len(pattern)
    out: list[str] = []
    while i < n:
        c = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif c == "*":
            out.append("[^/]*")
            i += 1
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(c))
                i += 1
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end + 1
        else:
            out.append(re.escape(c))
            i += 1
    return re.compile("".join(out) + r"\Z")


def matches_patterns(rel_path: str, patterns: Iterable[str]) -> bool:
    """Check ``rel_path`` against positive and ``!``-negated patterns."""
    included = False
    for raw in patterns:
        negate = raw.startswith("!")
        pattern = raw[1:] if negate else raw
        if any(glob_to_regex(p).match(rel_path) for p in expand_braces(pattern)):
            included = not negate
    return included


def _is_hidden(name: str) -> bool:
    return name.startswith(".") or name.startswith(IGNORE_MARKER)


def find_files(
    root: Path,
    patterns: Sequence[str] = DEFAULT_PATTERNS,
    *,
    gitignore_dirs: Sequence[Path] = (),
) -> list[Path]:
    """Find regular files under ``root`` matching ``patterns``.

    Args:
        root: Directory to search (a document type's content directory).
        patterns: Glob patterns relative to ``root``; ``!`` negates.
        gitignore_dirs: Extra directories whose ``.gitignore`` applies;
            ``root`` itself is always consulted.

    Returns:
        Absolute paths, sorted by their POSIX path relative to ``root``.
    """
    root = root.resolve()
    if not root.is_dir():
        logger.warning("Content directory %s does not exist", root)
        return []

    rule_sets: list[tuple[Path, list[IgnoreRule]]] = []
    for directory in (*gitignore_dirs, root):
        rules = load_ignore_rules(directory)
        if rules:
            rule_sets.append((directory.resolve(), rules))

    def ignored(path: Path, is_dir: bool) -> bool:
        for base, rules in rule_sets:
            try:
                rel = path.relative_to(base).as_posix()
            except ValueError:
                continue
            if _is_ignored(rel, is_dir, rules):
                return True
        return False

    found: list[tuple[str, Path]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d for d in dirnames if not _is_hidden(d) and not ignored(current / d, True)
        )
        for name in filenames:
            if _is_hidden(name):
                continue
            path = current / name
            if not path.is_file() or ignored(path, False):
                continue
            rel = path.relative_to(root).as_posix()
            if matches_patterns(rel, patterns):
                found.append((rel, path))

    found.sort(key=lambda item: item[0])
    logger.debug("Found %d file(s) under %s", len(found), root)
    return [path for _, path in found]
