import os
import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

import json
from pathlib import Path

import pytest
import yaml

from cms.auth.passwords import hash_password
from cms.auth.session import SessionManager
from cms.services.article_store import ArticleStore


class FakeClock:
    """Manually advanced clock for session expiry tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def write_articles(path: Path, ids) -> None:
    rows = [
        {"id": i, "title": f"Title {i}", "content": f"Content {i}", "date": "2025-05-14", "image": f"{i}.jpg"}
        for i in ids
    ]
    path.write_text(json.dumps(rows, indent=2), encoding="utf-8")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sessions(clock) -> SessionManager:
    return SessionManager(timeout=1800, clock=clock)


@pytest.fixture()
def articles_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "articles.json"


@pytest.fixture()
def store(articles_path: Path) -> ArticleStore:
    return ArticleStore(articles_path)


@pytest.fixture(scope="session")
def users_yaml(tmp_path_factory) -> Path:
    """users.yml with an active 'admin'/'password', a second user and an inactive one."""
    d = tmp_path_factory.mktemp("users")
    p = d / "users.yml"
    raw = {
        "version": 1,
        "users": {
            "admin": {"active": True, "password_hash": hash_password("password")},
            "editor": {"active": True, "password_hash": hash_password("editor-pw")},
            "retired": {"active": False, "password_hash": hash_password("retired-pw")},
        },
    }
    p.write_text(yaml.safe_dump(raw, sort_keys=False), encoding="utf-8")
    return p


@pytest.fixture()
def secret_key(monkeypatch) -> str:
    monkeypatch.setenv("CMS_SECRET_KEY", "test-secret")
    return "test-secret"
