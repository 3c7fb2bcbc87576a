"""
Auth security helpers.

Tokens are issued elsewhere; this service only verifies them. The `sub` claim
is the owner scope every catalog operation runs under.
"""

from __future__ import annotations

import os
import time
from typing import Any

import jwt


class AuthSecurityError(RuntimeError):
    pass


def jwt_secret() -> str:
    # Local default keeps development simple.
    # In production, set JWT_SECRET in environment.
    return os.environ.get("JWT_SECRET", "dev-change-this-secret").strip() or "dev-change-this-secret"


def jwt_algorithm() -> str:
    return os.environ.get("JWT_ALG", "HS256").strip() or "HS256"


def now_epoch_s() -> int:
    return int(time.time())


def build_access_token(*, owner: str, expires_in_s: int = 900) -> str:
    """
    Mint a token for `owner`. Used by local tooling and tests.
    """
    issued_at = now_epoch_s()
    payload = {
        "sub": owner,
        "iat": issued_at,
        "exp": issued_at + expires_in_s,
    }
    return jwt.encode(payload, jwt_secret(), algorithm=jwt_algorithm())


def decode_access_token(token: str) -> dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Access token is empty.")

    try:
        payload = jwt.decode(
            raw,
            jwt_secret(),
            algorithms=[jwt_algorithm()],
            options={"require": ["sub", "exp"]},
        )
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid access token.") from exc

    return payload


def owner_from_token(token: str) -> str:
    payload = decode_access_token(token)
    owner = str(payload.get("sub") or "").strip()
    if not owner:
        raise AuthSecurityError("Invalid access token subject.")
    return owner
