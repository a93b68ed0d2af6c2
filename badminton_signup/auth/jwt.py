from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any, Literal
import jwt  # PyJWT

from ..config import get_settings

S = get_settings()

ALGO = "HS256"
# small allowance for clock drift between replicas
LEEWAY = timedelta(seconds=30)

Role = Literal["user", "admin"]


def create_jwt(claims: dict[str, Any], ttl: timedelta) -> str:
    now = datetime.now(timezone.utc)
    return jwt.encode(
        {"iss": S.APP_NAME, "aud": S.APP_NAME, "iat": now, "exp": now + ttl, **claims},
        S.JWT_SECRET,
        algorithm=ALGO,
    )


def verify_jwt(token: str) -> dict[str, Any]:
    return jwt.decode(
        token,
        S.JWT_SECRET,
        algorithms=[ALGO],
        audience=S.APP_NAME,
        issuer=S.APP_NAME,
        leeway=LEEWAY,
        options={"require": ["exp", "iat", "role"]},
    )


def role_ttl(role: Role) -> timedelta:
    return timedelta(seconds=S.ADMIN_TOKEN_TTL_SEC if role == "admin" else S.USER_TOKEN_TTL_SEC)


def create_role_token(role: Role) -> str:
    return create_jwt({"sub": role, "role": role}, role_ttl(role))


def token_has_role(token: str | None, role: Role) -> bool:
    """True when the token is valid, unexpired and was issued for `role`."""
    if not token:
        return False
    try:
        claims = verify_jwt(token)
    except jwt.PyJWTError:
        return False
    return claims["role"] == role
