# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""File access for the article collection (a single JSON array on disk)."""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Sequence

from cms.core.errors import InvalidInput, StoreUnavailable
from cms.core.models import Article, article_from_record

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_KEEP = int(os.getenv("CMS_BACKUP_KEEP", "5"))


def encode_articles(articles: Sequence[Article]) -> str:
    """Deterministic JSON encoding: same collection, same bytes."""
    payload = [a.to_dict() for a in articles]
    return json.dumps(payload, ensure_ascii=False, indent=2) + "\n"


def decode_articles(raw: str) -> List[Article]:
    data = json.loads(raw)
    if not isinstance(data, list):
        raise InvalidInput("Article file must contain a JSON array")
    return [article_from_record(item) for item in data]


def load_articles(path: Path) -> List[Article]:
    """Read the whole collection.

    - A missing file is an empty collection (fresh install).
    - Anything unreadable or malformed raises StoreUnavailable; partial data is never returned.
    """
    if not path.exists():
        return []
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("Cannot read article file %s: %s", path, e)
        raise StoreUnavailable(f"Cannot read '{path}'") from e
    if not raw.strip():
        return []
    try:
        return decode_articles(raw)
    except (ValueError, InvalidInput) as e:
        # json.JSONDecodeError is a ValueError
        logger.error("Malformed article file %s: %s", path, e)
        raise StoreUnavailable(f"Malformed article file '{path}'") from e


def save_articles(path: Path, articles: Sequence[Article]) -> None:
    """Replace the collection on disk.

    Written to a temp file in the same directory, flushed, then moved into
    place with os.replace so readers see either the old or the new snapshot.
    """
    text = encode_articles(articles)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    except OSError as e:
        logger.error("Cannot prepare write of %s: %s", path, e)
        raise StoreUnavailable(f"Cannot write '{path}'") from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        logger.error("Cannot write article file %s: %s", path, e)
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise StoreUnavailable(f"Cannot write '{path}'") from e


def backup_articles(path: Path, *, keep: int = DEFAULT_BACKUP_KEEP) -> str:
    """Create a timestamped .bak copy next to the article file.

    - Only the newest ``keep`` backups are kept; older ones are removed.
    - Copy failures raise StoreUnavailable so the mutation is aborted before any save.
    """
    ts = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    dst = path.with_suffix(path.suffix + f".bak_{ts}")
    try:
        shutil.copy2(path, dst)
    except OSError as e:
        logger.error("Cannot back up article file %s: %s", path, e)
        raise StoreUnavailable(f"Cannot back up '{path}'") from e
    prune_backups(path, keep=keep)
    return str(dst)


def prune_backups(path: Path, *, keep: int = DEFAULT_BACKUP_KEEP) -> int:
    """Delete all but the newest ``keep`` backups (names sort by timestamp)."""
    backups = sorted(path.parent.glob(f"{path.name}.bak_*"))
    stale = backups[: max(0, len(backups) - max(1, keep))]
    for p in stale:
        try:
            p.unlink()
        except OSError as e:
            logger.warning("Cannot remove old backup %s: %s", p, e)
    return len(stale)
