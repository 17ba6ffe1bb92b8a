from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Optional, Tuple

from .config import DELIMITER, INLINE_LIST
from .utils import _norm_text, parse_date_like, unquote


@dataclass(frozen=True)
class FrontMatter:
    title: Optional[str] = None
    summary: Optional[str] = None
    date: Optional[datetime] = None
    hero: Optional[str] = None
    tags: Optional[Tuple[str, ...]] = None


def _metadata_lines(text: str) -> Iterator[str]:
    """
    Yield the lines between the opening `---` and the closing one. An
    unterminated block runs to the end of the document.
    """
    lines = _norm_text(text).split("\n")
    if not lines or lines[0].strip() != DELIMITER:
        return
    for line in lines[1:]:
        if line.strip() == DELIMITER:
            return
        yield line


def _key_values(text: str) -> List[Tuple[str, str]]:
    out: List[Tuple[str, str]] = []
    for line in _metadata_lines(text):
        key, sep, value = line.partition(":")
        if not sep:
            continue
        out.append((key.strip().lower(), unquote(value.strip())))
    return out


def parse_tags(value: str) -> Optional[Tuple[str, ...]]:
    """Only the inline `[a, b, c]` form counts; anything else is ignored."""
    m = INLINE_LIST.fullmatch(value.strip())
    if not m:
        return None
    tags: List[str] = []
    for raw in m.group(1).split(","):
        t = unquote(raw.strip()).strip()
        if t:
            tags.append(t)
    return tuple(tags)


def parse_frontmatter(text: str) -> FrontMatter:
    """
    Read title/summary/date/hero/tags from the leading `---` block of an
    entry document.

    Tolerant by contract: missing delimiters, lines without a colon, bad
    dates and unrecognised keys all just leave fields unset.
    """
    if not isinstance(text, str):
        return FrontMatter()

    title = summary = hero = None
    date = None
    tags = None

    for key, value in _key_values(text):
        if key == "title":
            title = value or None
        elif key in ("summary", "description"):
            summary = value or None
        elif key == "date":
            date = parse_date_like(value) or date
        elif key == "hero":
            hero = value or None
        elif key == "tags":
            parsed = parse_tags(value)
            if parsed is not None:
                tags = parsed

    return FrontMatter(
        title=title, summary=summary, date=date, hero=hero, tags=tags
    )
