# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Article types.

``Article`` is what the store persists. ``ArticleFields`` is what callers are
allowed to supply: everything except the id, which only the store assigns.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict, StrictStr

from cms.core.errors import InvalidInput

FIELD_NAMES = ("title", "content", "date", "image")
COLUMNS = ("id",) + FIELD_NAMES


@dataclass(frozen=True)
class ArticleFields:
    title: str = ""
    content: str = ""
    date: str = ""
    image: str = ""


@dataclass(frozen=True)
class Article:
    id: int
    title: str = ""
    content: str = ""
    date: str = ""
    image: str = ""

    @classmethod
    def build(cls, article_id: int, fields: ArticleFields) -> "Article":
        return cls(id=article_id, **asdict(fields))

    def to_dict(self) -> Dict[str, Any]:
        return {k: getattr(self, k) for k in COLUMNS}


class ArticlePayload(BaseModel):
    """Request body for add/edit.

    Unknown keys (including ``id``) are ignored, missing ones default to ``""``.
    Non-string values are rejected.
    """

    model_config = ConfigDict(extra="ignore")

    title: StrictStr = ""
    content: StrictStr = ""
    date: StrictStr = ""
    image: StrictStr = ""

    def to_fields(self) -> ArticleFields:
        return ArticleFields(title=self.title, content=self.content, date=self.date, image=self.image)


def article_from_record(raw: Any) -> Article:
    """Turn one persisted JSON object into an Article (raises InvalidInput)."""
    if not isinstance(raw, Mapping):
        raise InvalidInput(f"Article record must be an object, got {type(raw).__name__}")
    aid = raw.get("id")
    # bool is an int subclass; a persisted `true` id is corruption, not 1
    if not isinstance(aid, int) or isinstance(aid, bool):
        raise InvalidInput(f"Article record has a non-integer id: {aid!r}")
    values = {}
    for name in FIELD_NAMES:
        v = raw.get(name, "")
        if v is None:
            v = ""
        if not isinstance(v, str):
            raise InvalidInput(f"Article {aid}: field '{name}' must be a string")
        values[name] = v
    return Article(id=aid, **values)
