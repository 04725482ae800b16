"""Operator bearer tokens guarding the subscription endpoints."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fetanpay.config import get_settings

ALGORITHM = "HS256"
OPERATOR_TOKEN_TTL = timedelta(hours=12)
bearer_scheme = HTTPBearer(auto_error=False)


def issue_operator_token(email: str, ttl: timedelta = OPERATOR_TOKEN_TTL) -> str:
    issued_at = datetime.now(timezone.utc)
    return jwt.encode(
        {"sub": email, "iat": issued_at, "exp": issued_at + ttl},
        get_settings().secret_key.get_secret_value(),
        algorithm=ALGORITHM,
    )


def require_operator(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Return the operator email from a valid token signed for ADMIN_EMAIL."""
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing authorization token")

    settings = get_settings()
    try:
        claims = jwt.decode(
            creds.credentials,
            settings.secret_key.get_secret_value(),
            algorithms=[ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    if str(claims["sub"]).strip().lower() != settings.admin_email.lower():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token is not for the billing operator")
    return settings.admin_email
