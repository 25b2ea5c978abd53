from datetime import UTC, datetime, timedelta

import jwt
from fastapi import HTTPException, Request

from premium.core.config import settings


def create_access_token(user_id: str, ttl: timedelta | None = None) -> str:
    """Issue a bearer token for a signed-in member."""
    payload = {
        "sub": user_id,
        "type": "access",
        "exp": datetime.now(UTC) + (ttl or timedelta(hours=settings.AUTH_TOKEN_TTL_HOURS)),
    }
    return jwt.encode(payload, settings.AUTH_JWT_SECRET, algorithm="HS256")


def decode_access_token(token: str) -> str:
    """Decode and validate an access token, returning the user id.

    Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError on failure.
    """
    payload = jwt.decode(token, settings.AUTH_JWT_SECRET, algorithms=["HS256"])
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError("Invalid token type")
    user_id = payload.get("sub")
    if not user_id:
        raise jwt.InvalidTokenError("Token has no subject")
    return str(user_id)


def get_current_user_id(request: Request) -> str:
    """Extract the signed-in member's id from the Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Authentication required")

    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    token = auth_header[7:]
    if not token:
        raise HTTPException(status_code=401, detail="Access token is required")

    try:
        return decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Access token has expired") from None
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid access token") from None
