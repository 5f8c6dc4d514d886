"""Caller identification.

Authentication itself lives elsewhere; this module only turns a request into
a stable user id through the ``get_current_user_id`` dependency.

With ``auth_enabled`` off (local dev and tests) the id comes from the
``X-User-Id`` header, defaulting to ``local-dev``. With it on, the request
must carry ``Authorization: Bearer <id_token>`` signed by the configured
Cognito user pool; the token's ``sub`` claim is the user id.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Optional

import httpx
import structlog
from fastapi import Depends, Header, HTTPException, status
from jose import JWTError, jwt
from pydantic import BaseModel

from settings import Settings, get_settings

logger = structlog.get_logger(__name__)

LOCAL_USER_ID = "local-dev"


class TokenPayload(BaseModel):
    sub: str
    email: Optional[str] = None
    exp: int
    aud: str


class AuthSettings(BaseModel):
    region: str
    user_pool_id: str
    client_id: str

    @property
    def issuer(self) -> str:  # cognito issuer URL
        return f"https://cognito-idp.{self.region}.amazonaws.com/{self.user_pool_id}"

    @property
    def jwks_url(self) -> str:
        return f"{self.issuer}/.well-known/jwks.json"


def _auth_settings(settings: Settings) -> AuthSettings:
    if not settings.cognito_user_pool_id or not settings.cognito_app_client_id:
        logger.error("Cognito settings missing while auth is enabled")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication is misconfigured",
        )
    return AuthSettings(
        region=settings.aws_region,
        user_pool_id=settings.cognito_user_pool_id,
        client_id=settings.cognito_app_client_id,
    )


@lru_cache
def _get_jwks(jwks_url: str) -> dict:
    logger.info("Fetching JWKS", jwks_url=jwks_url)
    resp = httpx.get(jwks_url, timeout=10)
    resp.raise_for_status()
    return resp.json()


def verify_token(token: str, settings: Settings) -> TokenPayload:
    """Verify a Cognito JWT and return its payload. Raises 401 on failure."""
    auth_settings = _auth_settings(settings)
    jwks = _get_jwks(auth_settings.jwks_url)

    try:
        payload = jwt.decode(
            token,
            jwks,
            algorithms=["RS256"],
            audience=auth_settings.client_id,
            issuer=auth_settings.issuer,
            options={"verify_at_hash": False},
        )
        return TokenPayload.model_validate(payload)
    except JWTError as exc:
        logger.warning("JWT verification failed", exc=str(exc))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


async def get_current_user_id(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[Optional[str], Header()] = None,
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> str:
    if not settings.auth_enabled:
        return x_user_id or LOCAL_USER_ID

    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    token = authorization.split(" ", 1)[1]
    return verify_token(token, settings).sub
