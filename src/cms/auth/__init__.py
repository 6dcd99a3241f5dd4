# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication.

- Password hashing/verification (argon2)
- User directory loading from data/users.yml
- Server-side sessions with inactivity expiry, signed cookie tokens (itsdangerous)
"""
