"""Identifier, file name and slug helpers for generated artifacts."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

__all__ = [
    "camel_case",
    "generate_type_name",
    "get_data_variable_name",
    "get_document_id_and_slug",
    "id_to_file_name",
    "left_pad_if_starts_with_number",
    "make_variable_name",
    "pluralize",
    "singularize",
    "slugify",
    "to_pascal_case",
    "unique_variable_names",
]

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]+")
_WORD_RE = re.compile(r"[a-zA-Z0-9]+")
# github-slugger strips everything that is not a word char, space or hyphen
_SLUG_STRIP_RE = re.compile(r"[^\w\- ]", re.UNICODE)

_IRREGULAR_PLURALS: dict[str, str] = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "index": "indices",
}
_IRREGULAR_SINGULARS = {v: k for k, v in _IRREGULAR_PLURALS.items()}
_UNCOUNTABLE = frozenset({"data", "news", "series", "species", "information", "media"})


def left_pad_if_starts_with_number(value: str) -> str:
    return "_" + value if value[:1].isdigit() else value


def id_to_file_name(doc_id: str) -> str:
    """Mangle a document id into a flat, filesystem-safe file stem."""
    return left_pad_if_starts_with_number(doc_id).replace("\\", "/").replace("/", "__")


def camel_case(value: str) -> str:
    words = _WORD_RE.findall(value)
    if not words:
        return ""
    head, *tail = words
    return head.lower() + "".join(w[:1].upper() + w[1:].lower() for w in tail)


def make_variable_name(doc_id: str) -> str:
    """Return a JavaScript identifier for a document id.

    The name is a stable function of the id; see
    :func:`unique_variable_names` for de-duplication within one module.
    """
    name = camel_case(id_to_file_name(doc_id)) or "_doc"
    return left_pad_if_starts_with_number(name)


def unique_variable_names(doc_ids: list[str]) -> list[str]:
    """Return one identifier per id, suffixing later duplicates with ``_2``, ``_3``..."""
    seen: dict[str, int] = {}
    names: list[str] = []
    for doc_id in doc_ids:
        base = make_variable_name(doc_id)
        count = seen.get(base, 0) + 1
        seen[base] = count
        names.append(base if count == 1 else f"{base}_{count}")
    return names


def to_pascal_case(value: str) -> str:
    words = _NON_ALNUM_RE.sub(" ", value).split()
    return "".join(w[:1].upper() + w[1:].lower() for w in words)


def pluralize(word: str) -> str:
    """Naive English pluralization of the last word of a PascalCase name."""
    prefix, last = _split_last_word(word)
    lower = last.lower()
    if not last or lower in _UNCOUNTABLE:
        return word
    if lower in _IRREGULAR_PLURALS:
        plural = _IRREGULAR_PLURALS[lower]
    elif re.search(r"[^aeiou]y$", lower):
        plural = lower[:-1] + "ies"
    elif re.search(r"(s|x|z|ch|sh)$", lower):
        plural = lower + "es"
    else:
        plural = lower + "s"
    return prefix + _match_case(last, plural)


def singularize(word: str) -> str:
    """Naive English singularization, the inverse of :func:`pluralize`."""
    prefix, last = _split_last_word(word)
    lower = last.lower()
    if not last or lower in _UNCOUNTABLE:
        return word
    if lower in _IRREGULAR_SINGULARS:
        singular = _IRREGULAR_SINGULARS[lower]
    elif lower.endswith("ies") and len(lower) > 3:
        singular = lower[:-3] + "y"
    elif re.search(r"(ss|x|z|ch|sh)es$", lower):
        singular = lower[:-2]
    elif lower.endswith("s") and not lower.endswith("ss"):
        singular = lower[:-1]
    else:
        singular = lower
    return prefix + _match_case(last, singular)


def _split_last_word(word: str) -> tuple[str, str]:
    match = re.search(r"[A-Z]?[a-z0-9]*$", word)
    if match is None or not match.group(0):
        return "", word
    return word[: match.start()], match.group(0)


def _match_case(original: str, replacement: str) -> str:
    if original[:1].isupper():
        return replacement[:1].upper() + replacement[1:]
    return replacement


def get_data_variable_name(doc_type: str) -> str:
    """``blog-post`` → ``allBlogPosts``."""
    return "all" + pluralize(to_pascal_case(doc_type))


def generate_type_name(doc_type: str) -> str:
    """``blog-posts`` → ``BlogPost``."""
    return singularize(to_pascal_case(doc_type))


def slugify(segment: str) -> str:
    """Slugify one path segment the way GitHub slugs headings."""
    return _SLUG_STRIP_RE.sub("", segment.lower()).replace(" ", "-")


def get_document_id_and_slug(relative_path: str) -> tuple[str, str]:
    """Derive the document id and slug from a path relative to its type dir.

    The id is the normalized relative path. The slug slugifies every
    segment of the extension-less path and drops a trailing ``index``.
    """
    path = PurePosixPath(relative_path.replace("\\", "/"))
    segments = list(path.with_suffix("").parts)
    slugs = [slugify(s) for s in segments]
    if slugs and slugs[-1] == "index":
        slugs = slugs[:-1]
    return str(path), "/".join(slugs)
