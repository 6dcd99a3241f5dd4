# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import re
from typing import Optional

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 5

_INT_RE = re.compile(r"[+-]?[0-9]+")


def parse_int(s: object) -> Optional[int]:
    """Strict int parse for query/path strings: optional sign, ASCII digits, nothing else.

    Returns None otherwise, so "1_0", " 3" or "٣" are not ids.
    """
    if isinstance(s, bool):
        return None
    if isinstance(s, int):
        return s
    raw = str(s or "")
    if not _INT_RE.fullmatch(raw):
        return None
    return int(raw)


def normalize_page(page: object = None, limit: object = None) -> tuple[int, int]:
    """Normalise page/limit. Missing, unparsable, zero or negative values fall back to defaults."""
    p = parse_int(page)
    n = parse_int(limit)
    if p is None or p < 1:
        p = DEFAULT_PAGE
    if n is None or n < 1:
        n = DEFAULT_LIMIT
    return p, n


def env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y"}
