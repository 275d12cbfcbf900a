"""Bearer token authentication for the admin API.

Tokens are issued elsewhere; here they are only verified. The ``sub`` claim is
the user id and ``role`` is the portal role used by the access gate.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from statportal.core.access import Principal

logger = logging.getLogger(__name__)

# Security scheme for Bearer token
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str, secret_key: str, algorithm: str = "HS256") -> Principal:
    """Verify a JWT and turn its claims into a principal."""
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        logger.warning("Expired bearer token")
        raise _unauthorized("Token expired")
    except jwt.InvalidTokenError:
        logger.warning(f"Invalid bearer token attempt: {token[:8]}...")
        raise _unauthorized("Invalid bearer token")

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or not role:
        raise _unauthorized("Token is missing the sub or role claim")

    return Principal(user_id=str(user_id), role=str(role))


def create_token(user_id: str, role: str, secret_key: str, algorithm: str = "HS256",
                 expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed token; used by local tooling and tests."""
    claims: Dict[str, Any] = {
        "sub": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + (expires_delta or timedelta(hours=24)),
    }
    return jwt.encode(claims, secret_key, algorithm=algorithm)


def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """Dependency resolving the bearer token to a principal."""
    if not credentials:
        raise _unauthorized("Authentication required")

    settings = getattr(request.app.state, "settings", None) or {}
    secret_key = settings.get("JWT_SECRET_KEY")
    if not secret_key:
        logger.error("JWT_SECRET_KEY is not configured - rejecting all tokens")
        raise _unauthorized("Authentication is not configured")

    return decode_token(credentials.credentials, secret_key, settings.get("JWT_ALGORITHM", "HS256"))
