"""Verification of access tokens issued by the hosted auth provider.

This service never issues tokens.  The frontend signs users in against
the auth provider and forwards its HS256 JWT as a bearer token; we check
the signature, expiry and audience, then map the claims onto a Principal.

Actor identity for audit records comes from here and only from here.
The legacy ``x-user-id`` / ``x-user-role`` / ``x-session-id`` headers are
client-supplied and are not consulted.
"""

from __future__ import annotations

import logging
from typing import Any

import jwt

from teachme.core.config import SETTINGS
from teachme.models.principal import Principal

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify signature and claims, return the payload.

    Pins the algorithm to HS256 to prevent alg:none and alg-switching
    attacks.  Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError.
    """
    if not SETTINGS.jwt_secret:
        raise jwt.InvalidTokenError("JWT_SECRET is not configured")
    return jwt.decode(
        token,
        SETTINGS.jwt_secret,
        algorithms=[ALGORITHM],
        audience=SETTINGS.jwt_audience,
        options={"require": ["sub", "exp"]},
    )


def principal_from_claims(claims: dict[str, Any]) -> Principal:
    # The auth provider reserves the top-level "role" claim for its own
    # database role ("authenticated"); the application role lives in
    # app_metadata, with user_metadata as a fallback for older accounts.
    app_meta = claims.get("app_metadata") or {}
    user_meta = claims.get("user_metadata") or {}
    role = app_meta.get("role") or user_meta.get("role")
    return Principal(
        user_id=str(claims["sub"]),
        role=str(role) if role else None,
        email=claims.get("email"),
        session_id=claims.get("session_id"),
    )


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer ...`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def try_resolve_principal(authorization: str | None) -> Principal | None:
    """Best-effort identity for audit attribution.  Never raises.

    Returns None for missing, malformed, expired or forged tokens; the
    route-level dependencies are what turn a bad token into a 401.
    """
    token = bearer_token(authorization)
    if token is None:
        return None
    try:
        return principal_from_claims(decode_access_token(token))
    except jwt.InvalidTokenError as e:
        logger.debug("Unverifiable bearer token ignored for audit: %s", e)
        return None
