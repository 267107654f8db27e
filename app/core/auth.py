"""
Bearer-token authentication dependency.

Every route except /health depends on `require_token`. The expected token
comes from settings.API_TOKEN; an empty setting rejects every request.
"""
from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Header

from app.core.config import settings
from app.core.errors import UnauthorizedError


def require_token(authorization: Optional[str] = Header(default=None)) -> None:
    expected = settings.API_TOKEN
    if not expected or not authorization:
        raise UnauthorizedError()
    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not secrets.compare_digest(token.encode(), expected.encode()):
        raise UnauthorizedError()
