from __future__ import annotations
import hmac
from fastapi import HTTPException, Request, Response
from fastapi import status
from ..config import get_settings
from .jwt import Role, create_role_token, role_ttl, token_has_role

S = get_settings()


def cookie_name(role: Role) -> str:
    return S.ADMIN_COOKIE_NAME if role == "admin" else S.USER_COOKIE_NAME


def _cookie_opts(role: Role) -> dict:
    return {
        "key": cookie_name(role),
        "httponly": True,
        "secure": S.ENV == "prod",
        "samesite": "lax",
        "max_age": int(role_ttl(role).total_seconds()),
        "path": "/",
    }


def check_password(role: Role, password: str) -> bool:
    expected = S.ADMIN_PASSWORD if role == "admin" else S.USER_PASSWORD
    if not expected:
        # no password configured: nobody can log in as this role
        return False
    return hmac.compare_digest(password.encode(), expected.encode())


def issue_cookie(response: Response, role: Role) -> None:
    response.set_cookie(value=create_role_token(role), **_cookie_opts(role))


def clear_cookie(response: Response, role: Role) -> None:
    response.delete_cookie(key=cookie_name(role), path="/")


def has_role(request: Request, role: Role) -> bool:
    return token_has_role(request.cookies.get(cookie_name(role)), role)


async def require_user(request: Request) -> None:
    # an admin may act as a user as well
    if has_role(request, "user") or has_role(request, "admin"):
        return
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")


async def require_admin(request: Request) -> None:
    if not has_role(request, "admin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
