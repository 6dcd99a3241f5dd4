# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy shared by the store, the auth layer and the HTTP routes.

Expected conditions (unknown id, wrong password) are plain return values
(``None`` / ``False``). These exceptions cover the rest.
"""

from __future__ import annotations


class CmsError(Exception):
    """Base class. ``http_status`` and ``public_message`` drive the HTTP mapping."""

    http_status = 500
    public_message = "Internal server error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.public_message)


class Unauthorized(CmsError):
    http_status = 401
    public_message = "Unauthorized"


class NotFound(CmsError):
    http_status = 404
    public_message = "Article not found"


class InvalidInput(CmsError):
    http_status = 400
    public_message = "Invalid data"


class StoreUnavailable(CmsError):
    """The article file could not be read, parsed or written."""


class AuthBackendUnavailable(CmsError):
    """The user directory could not be read or parsed (the verifier fails closed)."""
