# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml

from cms.auth.passwords import burn_verification, verify_password
from cms.core.errors import AuthBackendUnavailable
from cms.core.utils import env_flag

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parents[3]
DEFAULT_DATA_DIR = Path(os.getenv("CMS_DATA_DIR", str(BASE_DIR / "data"))).resolve()
DEFAULT_USERS_PATH = Path(
    os.getenv("CMS_USERS_PATH", str(DEFAULT_DATA_DIR / "users.yml"))
).resolve()

SCOPE_USER = "user"
SCOPE_ANY = "any"
DEFAULT_SCOPE = SCOPE_ANY if env_flag(os.getenv("CMS_AUTH_MATCH_ANY_USER")) else SCOPE_USER


@dataclass(frozen=True)
class UserRecord:
    username: str
    password_hash: str
    active: bool = True


def _load_users_file(path: Path) -> Dict[str, UserRecord]:
    """Parse users.yml. Raises AuthBackendUnavailable when the file is missing or malformed."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise AuthBackendUnavailable(f"Cannot load user directory '{path}': {e}") from e
    if not isinstance(raw, dict) or not isinstance(raw.get("users") or {}, dict):
        raise AuthBackendUnavailable(f"User directory '{path}' has an unexpected layout")

    out: Dict[str, UserRecord] = {}
    for uname, udata in (raw.get("users") or {}).items():
        if not isinstance(udata, dict):
            continue
        username = str(uname).strip()
        if not username:
            continue
        out[username] = UserRecord(
            username=username,
            password_hash=str(udata.get("password_hash") or "").strip(),
            active=bool(udata.get("active", True)),
        )
    return out


class UserDirectory:
    """Read-only view of users.yml, re-read only when the file mtime changes."""

    def __init__(self, path: Path = DEFAULT_USERS_PATH) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._cache: Tuple[float, Dict[str, UserRecord]] = (0.0, {})

    def users(self) -> Dict[str, UserRecord]:
        try:
            mtime = self.path.stat().st_mtime
        except OSError as e:
            raise AuthBackendUnavailable(f"Cannot stat user directory '{self.path}': {e}") from e

        with self._lock:
            cached_mtime, cached_users = self._cache
            if mtime == cached_mtime and cached_users:
                return cached_users
            users = _load_users_file(self.path)
            self._cache = (mtime, users)
            return users

    def get(self, username: str) -> Optional[UserRecord]:
        u = (username or "").strip()
        if not u:
            return None
        return self.users().get(u)


class CredentialVerifier:
    """Checks a username/password pair against the user directory.

    ``scope="user"`` checks the password only against the named user.
    ``scope="any"`` accepts the password if it matches *any* active user,
    whatever username was sent; it exists for deployments that relied on that.
    """

    def __init__(self, directory: UserDirectory, *, scope: str = DEFAULT_SCOPE) -> None:
        if scope not in (SCOPE_USER, SCOPE_ANY):
            raise ValueError(f"Unknown credential scope '{scope}'")
        self.directory = directory
        self.scope = scope

    def verify(self, username: str, password: str) -> bool:
        """Never raises: an unreadable directory means no one gets in."""
        try:
            users = self.directory.users()
        except AuthBackendUnavailable as e:
            logger.error("Auth backend unavailable: %s", e)
            return False

        if self.scope == SCOPE_ANY:
            matched = False
            for u in users.values():
                # no early exit: every user costs one verification
                if u.active and verify_password(u.password_hash, password):
                    matched = True
            return matched

        u = users.get((username or "").strip())
        if not u or not u.active:
            burn_verification(password)
            return False
        return verify_password(u.password_hash, password)
