"""Bearer-token verification for sessions issued by the identity provider.

Sign-up, sign-in and password reset live with the provider. This module only
checks the HS256 access token it hands out and turns it into an explicit
:class:`AuthContext` that handlers pass on to the components they call.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from talkstudio.config import get_settings
from talkstudio.errors import AuthenticationRequired

log = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    email: str | None = None
    access_token: str = ""


def decode_access_token(token: str, secret: str | None = None, audience: str | None = None) -> AuthContext:
    """Verify *token* and return its caller. Raises AuthenticationRequired."""
    settings = get_settings()
    secret = secret if secret is not None else settings.jwt_secret
    audience = audience if audience is not None else settings.jwt_audience
    if not secret:
        log.warning("TALKSTUDIO_JWT_SECRET is not configured; rejecting bearer token")
        raise AuthenticationRequired("Authentication is not configured")
    try:
        payload = jwt.decode(
            token, secret, algorithms=[JWT_ALGORITHM],
            audience=audience or None,
            options={"verify_aud": bool(audience)},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationRequired("Session expired. Please log in again.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationRequired("Invalid session token") from exc

    user_id = str(payload.get("sub") or "")
    if not user_id:
        raise AuthenticationRequired("Invalid session token")
    return AuthContext(user_id=user_id, email=payload.get("email"), access_token=token)


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

_bearer_scheme = HTTPBearer(auto_error=False)


async def current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthContext:
    """Require a valid bearer token. Raises AuthenticationRequired (401)."""
    if not credentials or not credentials.credentials:
        raise AuthenticationRequired("Please log in to continue.")
    return decode_access_token(credentials.credentials)
