#!/usr/bin/env python3
"""Add or update a CMS admin in users.yml.

  python scripts/create_user.py alice                      # prompts for the password
  printf '%s\n' "$PW" | python scripts/create_user.py alice --password-stdin
  python scripts/create_user.py alice --deactivate         # keep the hash, block logins
"""
from __future__ import annotations

import argparse
import sys
from getpass import getpass
from pathlib import Path

import yaml

from cms.auth.passwords import hash_password
from cms.auth.users import DEFAULT_USERS_PATH


def _read_directory(path: Path) -> dict:
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) if path.exists() else None
    raw = raw if isinstance(raw, dict) else {}
    raw.setdefault("version", 1)
    if not isinstance(raw.get("users"), dict):
        raw["users"] = {}
    return raw


def _read_password(from_stdin: bool) -> str:
    if from_stdin:
        return sys.stdin.readline().rstrip("\r\n")
    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")
    return pw1


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("username")
    parser.add_argument("--users-path", type=Path, default=DEFAULT_USERS_PATH)
    parser.add_argument("--password-stdin", action="store_true", help="read the password from the first line of stdin")
    parser.add_argument("--deactivate", action="store_true", help="mark an existing user inactive without changing the password")
    args = parser.parse_args(argv)

    username = args.username.strip()
    if not username:
        raise SystemExit("Empty username")

    users_path: Path = args.users_path
    raw = _read_directory(users_path)
    users = raw["users"]

    if args.deactivate:
        if username not in users:
            raise SystemExit(f"Unknown user '{username}'")
        users[username]["active"] = False
    else:
        password = _read_password(args.password_stdin)
        if not password:
            raise SystemExit("Empty password")
        users[username] = {"active": True, "password_hash": hash_password(password)}

    users_path.parent.mkdir(parents=True, exist_ok=True)
    users_path.write_text(yaml.safe_dump(raw, sort_keys=False, allow_unicode=True), encoding="utf-8")
    print(f"OK -> {users_path}")


if __name__ == "__main__":
    main()
