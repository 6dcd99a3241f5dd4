# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Article collection: paginated reads and serialized read-modify-write mutations."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional, Tuple, TypeVar

from cms.core.models import Article, ArticleFields
from cms.core.utils import normalize_page
from cms.infra.article_repo import DEFAULT_BACKUP_KEEP, backup_articles, load_articles, save_articles

logger = logging.getLogger(__name__)

T = TypeVar("T")


def next_article_id(articles: List[Article]) -> int:
    """max(existing ids) + 1 (not count + 1, which collides with live ids after a delete)."""
    return max((a.id for a in articles), default=0) + 1


class ArticleStore:
    """Owns one article file.

    Reads (`list`, `get`, `paginate`) take no lock: saves are atomic renames,
    so a reader always sees a complete snapshot. Mutations hold ``_lock`` for
    the whole load -> mutate -> save cycle; two concurrent writers cannot both
    start from the same snapshot.
    """

    def __init__(self, path: Path, *, backup_on_write: bool = False, backup_keep: int = DEFAULT_BACKUP_KEEP) -> None:
        self.path = Path(path)
        self.backup_on_write = backup_on_write
        self.backup_keep = backup_keep
        self._lock = threading.Lock()

    # ------------------ snapshot access ------------------

    def load(self) -> List[Article]:
        return load_articles(self.path)

    def save(self, articles: List[Article]) -> None:
        save_articles(self.path, articles)

    # ------------------ reads ------------------

    def list(self) -> List[Article]:
        return self.load()

    def get(self, article_id: int) -> Optional[Article]:
        for a in self.load():
            if a.id == article_id:
                return a
        return None

    def paginate(self, page: object = 1, limit: object = 5) -> List[Article]:
        """Return one page. Out-of-range pages are empty; the last page may be short."""
        p, n = normalize_page(page, limit)
        articles = self.load()
        start = (p - 1) * n
        if start >= len(articles):
            return []
        return articles[start : start + n]

    # ------------------ mutations ------------------

    def _mutate(self, fn: Callable[[List[Article]], Tuple[Optional[List[Article]], T]]) -> T:
        """Run one locked load -> fn -> save cycle.

        ``fn`` returns ``(new_collection, result)``; a ``None`` collection means
        nothing changed and nothing is written.
        """
        with self._lock:
            articles = self.load()
            updated, result = fn(articles)
            if updated is not None:
                if self.backup_on_write and self.path.exists():
                    backup_articles(self.path, keep=self.backup_keep)
                self.save(updated)
            return result

    def insert(self, fields: ArticleFields) -> Article:
        def _apply(articles: List[Article]):
            article = Article.build(next_article_id(articles), fields)
            return articles + [article], article

        article = self._mutate(_apply)
        logger.info("Inserted article %s", article.id)
        return article

    def update(self, article_id: int, fields: ArticleFields) -> Optional[Article]:
        def _apply(articles: List[Article]):
            for i, a in enumerate(articles):
                if a.id == article_id:
                    # id comes from the lookup key, never from the payload
                    replaced = Article.build(article_id, fields)
                    return articles[:i] + [replaced] + articles[i + 1 :], replaced
            return None, None

        article = self._mutate(_apply)
        if article is None:
            logger.info("Update of missing article %s", article_id)
        else:
            logger.info("Updated article %s", article_id)
        return article

    def delete(self, article_id: int) -> bool:
        def _apply(articles: List[Article]):
            kept = [a for a in articles if a.id != article_id]
            if len(kept) == len(articles):
                return None, False
            return kept, True

        deleted = self._mutate(_apply)
        logger.info("Delete article %s: %s", article_id, "ok" if deleted else "not found")
        return deleted
