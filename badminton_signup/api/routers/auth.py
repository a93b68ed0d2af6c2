from __future__ import annotations
import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, Field

from ...auth.deps import check_password, issue_cookie, clear_cookie, has_role
from ...services.rate_limit import limit_login

router = APIRouter(prefix="/auth", tags=["auth"])
log = logging.getLogger("app.auth")


class LoginIn(BaseModel):
    password: str = Field(min_length=1, max_length=200)
    type: Literal["user", "admin"]


class LogoutIn(BaseModel):
    type: Literal["user", "admin"]


class AuthStatusOut(BaseModel):
    authenticated: bool


@router.post("/login", response_model=AuthStatusOut, dependencies=[Depends(limit_login)])
async def login(payload: LoginIn, response: Response):
    if not check_password(payload.type, payload.password):
        log.warning("login_failed", extra={"role": payload.type})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")
    issue_cookie(response, payload.type)
    return AuthStatusOut(authenticated=True)


@router.get("/status", response_model=AuthStatusOut)
async def auth_status(request: Request, type: Literal["user", "admin"] = Query(...)):
    return AuthStatusOut(authenticated=has_role(request, type))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(payload: LogoutIn, response: Response):
    clear_cookie(response, payload.type)
    return None
