# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import json
import os
from typing import Optional

from fastapi import Depends, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from cms.auth.session import COOKIE_NAME
from cms.core.models import ArticleFields, ArticlePayload
from cms.core.utils import env_flag


def session_token(request: Request) -> Optional[str]:
    """Server-side session token from the signed cookie, or None if absent/forged/too old."""
    services = request.app.state.services
    return services.signer.unsign(request.cookies.get(COOKIE_NAME, ""))


def require_session(request: Request) -> str:
    """Dependency: raise Unauthorized unless the cookie maps to a live session (refreshes it)."""
    token = session_token(request)
    request.app.state.services.gateway.authorize(token)
    return token


async def article_fields(request: Request, token: str = Depends(require_session)) -> ArticleFields:
    """Dependency: the article body, read only once the session check has passed.

    Declared as a dependency rather than a body parameter so that FastAPI does
    not parse the body (and report its errors) before the caller is authorized.
    """
    raw = await request.body()
    try:
        data = json.loads(raw) if raw else None
    except ValueError:
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error", "input": None}]
        )
    try:
        return ArticlePayload.model_validate(data).to_fields()
    except ValidationError as e:
        raise RequestValidationError(
            [{**err, "loc": ("body", *err.get("loc", ()))} for err in e.errors(include_url=False)]
        )


def cookie_settings() -> dict:
    secure = env_flag(os.getenv("CMS_COOKIE_SECURE"), default=False)
    return {"httponly": True, "samesite": "lax", "secure": secure}
