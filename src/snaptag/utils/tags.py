"""Tag derivation and normalization helpers."""

import re
from collections.abc import Iterable

# Trailing ".ext" where ext contains neither "/" nor "."
EXTENSION_PATTERN = re.compile(r"\.[^/.]+$")
FILENAME_SEPARATOR_PATTERN = re.compile(r"[-_\s]+")


def strip_extension(filename: str) -> str:
    """Remove the trailing extension: ``"a.b.jpg"`` -> ``"a.b"``."""
    return EXTENSION_PATTERN.sub("", filename)


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """
    Trim and lowercase tags, dropping empties and duplicates.

    First-seen order is kept so that stored tag lists stay stable.
    """
    seen: set[str] = set()
    normalized = []
    for tag in tags:
        cleaned = tag.strip().lower()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            normalized.append(cleaned)
    return normalized


def derive_baseline_tags(filename: str) -> list[str]:
    """
    Derive tags from a filename stem.

    The extension is stripped and the stem split on ``-``, ``_`` and runs of
    whitespace, so ``"My_Summer-Trip 01.jpg"`` yields
    ``["my", "summer", "trip", "01"]``. May return an empty list.
    """
    stem = strip_extension(filename)
    return normalize_tags(FILENAME_SEPARATOR_PATTERN.split(stem))


def parse_tag_string(tag_string: str | None) -> list[str]:
    """Parse a comma-separated tag string as returned by a vision tagger."""
    if not tag_string:
        return []
    return normalize_tags(tag_string.split(","))


def merge_tags(baseline: Iterable[str], extra: Iterable[str]) -> list[str]:
    """Case-insensitive union of two tag collections, baseline first."""
    return normalize_tags([*baseline, *extra])
