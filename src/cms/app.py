# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from cms.auth.session import COOKIE_NAME, SESSION_TIMEOUT_SECONDS, Clock, SessionManager, TokenSigner
from cms.auth.users import DEFAULT_DATA_DIR, DEFAULT_SCOPE, CredentialVerifier, UserDirectory
from cms.core.errors import CmsError, NotFound
from cms.core.models import ArticleFields
from cms.core.utils import env_flag, parse_int
from cms.permissions import article_fields, cookie_settings, require_session, session_token
from cms.services.article_store import ArticleStore
from cms.services.export_service import XLSX_MEDIA_TYPE, export_csv, export_xlsx
from cms.services.mutation_gateway import MutationGateway

logger = logging.getLogger(__name__)

_basic = HTTPBasic(auto_error=False)


@dataclass
class Services:
    """Everything the routes share. One instance per app, built by create_app."""

    store: ArticleStore
    sessions: SessionManager
    verifier: CredentialVerifier
    gateway: MutationGateway
    signer: TokenSigner


def build_services(
    *,
    data_dir: Optional[Path] = None,
    articles_path: Optional[Path] = None,
    users_path: Optional[Path] = None,
    secret_key: Optional[str] = None,
    session_timeout: Optional[float] = None,
    clock: Optional[Clock] = None,
    credential_scope: Optional[str] = None,
) -> Services:
    data_dir = Path(data_dir or os.getenv("CMS_DATA_DIR") or DEFAULT_DATA_DIR).resolve()
    articles_path = Path(articles_path or os.getenv("CMS_ARTICLES_PATH") or data_dir / "articles.json")
    users_path = Path(users_path or os.getenv("CMS_USERS_PATH") or data_dir / "users.yml")
    secret = secret_key or os.getenv("CMS_SECRET_KEY") or ""

    store = ArticleStore(articles_path, backup_on_write=env_flag(os.getenv("CMS_BACKUP_ON_WRITE")))
    session_kwargs = {"timeout": session_timeout or SESSION_TIMEOUT_SECONDS}
    if clock is not None:
        session_kwargs["clock"] = clock
    sessions = SessionManager(**session_kwargs)
    verifier = CredentialVerifier(UserDirectory(users_path), scope=credential_scope or DEFAULT_SCOPE)
    return Services(
        store=store,
        sessions=sessions,
        verifier=verifier,
        gateway=MutationGateway(sessions, store),
        signer=TokenSigner(secret),
    )


def _services(request: Request) -> Services:
    return request.app.state.services


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CmsError)
    async def _cms_error(request: Request, exc: CmsError):
        if exc.http_status >= 500:
            # detail stays in the log, the client gets the generic message
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc, exc_info=exc)
        headers = {"WWW-Authenticate": "Basic"} if exc.http_status == 401 else None
        return JSONResponse({"detail": exc.public_message}, status_code=exc.http_status, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        logger.warning("Invalid request body on %s: %s", request.url.path, exc.errors())
        errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
        return JSONResponse({"detail": "Invalid data", "errors": errors}, status_code=400)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s", request.url.path, exc_info=exc)
        return JSONResponse({"detail": "Internal server error"}, status_code=500)


def create_app(services: Optional[Services] = None, *, cors_origins: Optional[list[str]] = None) -> FastAPI:
    """Build the FastAPI app around one Services root (built from env when not given)."""
    services = services or build_services()

    app = FastAPI(title="cms")
    app.state.services = services

    origins = cors_origins or [o.strip() for o in os.getenv("CMS_CORS_ORIGINS", "*").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    _register_error_handlers(app)

    # ------------------ Public reads ------------------

    @app.get("/articles")
    def list_articles(page: str = "", limit: str = "", svc: Services = Depends(_services)):
        return [a.to_dict() for a in svc.store.paginate(page, limit)]

    @app.get("/article/{article_id}")
    def get_article(article_id: str, svc: Services = Depends(_services)):
        aid = parse_int(article_id)
        article = svc.store.get(aid) if aid is not None else None
        if article is None:
            raise NotFound()
        return article.to_dict()

    # ------------------ Session ------------------

    @app.post("/login")
    def login(
        request: Request,
        credentials: Optional[HTTPBasicCredentials] = Depends(_basic),
        svc: Services = Depends(_services),
    ):
        if credentials is None or not svc.verifier.verify(credentials.username, credentials.password):
            logger.info("Failed login for '%s'", credentials.username if credentials else "")
            return JSONResponse(
                {"detail": "Invalid credentials"},
                status_code=401,
                headers={"WWW-Authenticate": "Basic"},
            )
        # a re-login replaces the session the client already holds
        previous = session_token(request)
        if previous:
            svc.sessions.logout(previous)
        token = svc.sessions.login()
        logger.info("Login for '%s'", credentials.username)
        resp = JSONResponse({"message": "Login successful"})
        resp.set_cookie(COOKIE_NAME, svc.signer.sign(token), max_age=svc.signer.max_age, **cookie_settings())
        return resp

    @app.post("/logout")
    def logout(request: Request, svc: Services = Depends(_services)):
        token = session_token(request)
        if token:
            svc.sessions.logout(token)
        resp = JSONResponse({"message": "Logged out"})
        resp.delete_cookie(COOKIE_NAME)
        return resp

    # ------------------ Admin (session required) ------------------

    @app.post("/admin/add")
    def add_article(
        token: str = Depends(require_session),
        fields: ArticleFields = Depends(article_fields),
        svc: Services = Depends(_services),
    ):
        article = svc.gateway.insert(token, fields)
        return article.to_dict()

    @app.put("/admin/edit/{article_id}")
    def edit_article(
        article_id: str,
        token: str = Depends(require_session),
        fields: ArticleFields = Depends(article_fields),
        svc: Services = Depends(_services),
    ):
        aid = parse_int(article_id)
        if aid is None:
            raise NotFound()
        article = svc.gateway.update(token, aid, fields)
        if article is None:
            raise NotFound()
        return article.to_dict()

    @app.delete("/admin/delete/{article_id}")
    def delete_article(article_id: str, request: Request, svc: Services = Depends(_services)):
        token = session_token(request)
        aid = parse_int(article_id)
        if aid is None:
            svc.gateway.authorize(token)
            raise NotFound()
        if not svc.gateway.delete(token, aid):
            raise NotFound()
        return {"message": "Article deleted"}

    @app.get("/admin/export.csv")
    def export_articles_csv(request: Request, svc: Services = Depends(_services)):
        svc.gateway.authorize(session_token(request))
        return PlainTextResponse(
            export_csv(svc.store.list()),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="articles.csv"'},
        )

    @app.get("/admin/export.xlsx")
    def export_articles_xlsx(request: Request, svc: Services = Depends(_services)):
        svc.gateway.authorize(session_token(request))
        return Response(
            export_xlsx(svc.store.list()),
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": 'attachment; filename="articles.xlsx"'},
        )

    return app
