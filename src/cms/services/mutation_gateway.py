# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from typing import Optional

from cms.auth.session import SessionManager
from cms.core.errors import Unauthorized
from cms.core.models import Article, ArticleFields
from cms.services.article_store import ArticleStore

logger = logging.getLogger(__name__)


class MutationGateway:
    """Session check in front of every write to the article store.

    An unauthorized call raises Unauthorized before the store is touched.
    An authorized call returns the store's result unchanged; store errors
    propagate to the caller.
    """

    def __init__(self, sessions: SessionManager, store: ArticleStore) -> None:
        self.sessions = sessions
        self.store = store

    def authorize(self, token: Optional[str]) -> None:
        if not token or not self.sessions.is_authenticated(token):
            logger.info("Rejected unauthenticated admin request")
            raise Unauthorized()

    def insert(self, token: Optional[str], fields: ArticleFields) -> Article:
        self.authorize(token)
        return self.store.insert(fields)

    def update(self, token: Optional[str], article_id: int, fields: ArticleFields) -> Optional[Article]:
        self.authorize(token)
        return self.store.update(article_id, fields)

    def delete(self, token: Optional[str], article_id: int) -> bool:
        self.authorize(token)
        return self.store.delete(article_id)
