from __future__ import annotations

import re
import secrets
from datetime import datetime
from typing import Optional

from dateutil import parser as date_parser

from .config import SLUG_RE, VALID_SLUG


def slugify(s: Optional[str]) -> str:
    """
    Lowercase `s` and squeeze everything outside [a-z0-9] into single
    hyphens. Never returns an empty string: input with nothing usable
    gets a random opaque identifier instead.
    """
    slug = re.sub(r"-{2,}", "-", SLUG_RE.sub("-", (s or "").lower()).strip("-"))
    return slug or random_slug()


def random_slug() -> str:
    return secrets.token_hex(16)


def is_valid_slug(s: str) -> bool:
    return bool(VALID_SLUG.match(s))


def _norm_text(s: str) -> str:
    return s.replace('\r\n', '\n').replace('\r', '\n').lstrip('\ufeff')


def unquote(s: str) -> str:
    """Strip one layer of matching single or double quotes."""
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        return s[1:-1]
    return s


def parse_date_like(v: str) -> Optional[datetime]:
    s = unquote(v.strip()).strip()
    if not s:
        return None
    try:
        return date_parser.isoparse(s)
    except (ValueError, OverflowError, TypeError):
        pass
    try:
        return date_parser.parse(s)
    except (ValueError, OverflowError, TypeError):
        return None

