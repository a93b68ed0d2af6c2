from __future__ import annotations
import logging
from fastapi import HTTPException, Request, status
from redis.exceptions import RedisError
from ..config import get_settings
from .. import redis_client

S = get_settings()
log = logging.getLogger("app.rate_limit")

WINDOW_SEC = 60


# ---- generic token counter (fixed window) ----
async def _hit(key: str, window_sec: int, limit: int) -> None:
    try:
        count = await redis_client.redis.incr(key)
        if count == 1:
            await redis_client.redis.expire(key, window_sec)
        ttl = await redis_client.redis.ttl(key) if count > limit else 0
    except RedisError as e:
        # limiter unavailable: fail open
        log.warning("rate_limit_unavailable", extra={"key": key, "error": str(e)})
        return
    if count > limit:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="rate limit exceeded",
            headers={"Retry-After": str(ttl) if ttl and ttl > 0 else str(window_sec)},
        )


def _client_ip(req: Request) -> str:
    # prefer X-Forwarded-For (first hop), fallback to uvicorn client
    h = req.headers.get("x-forwarded-for")
    if h:
        return h.split(",")[0].strip()
    return req.client.host if req.client else "unknown"


# ---- public helpers ----
async def limit_login(req: Request) -> None:
    ip = _client_ip(req)
    await _hit(f"rl:login:ip:{ip}", window_sec=WINDOW_SEC, limit=S.RL_LOGIN_PER_IP_60S)


async def limit_cancel(req: Request) -> None:
    # 4-digit codes are cheap to enumerate; keep guesses per IP low
    ip = _client_ip(req)
    await _hit(f"rl:cancel:ip:{ip}", window_sec=WINDOW_SEC, limit=S.RL_CANCEL_PER_IP_60S)
