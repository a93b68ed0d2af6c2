from fastapi import APIRouter
from ...db import db_health
from ...redis_client import redis_health, key_alive
from ...workers.session_roller import HEARTBEAT_KEY

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health():
    store_ok = await db_health()
    limiter_ok = await redis_health()
    roller_ok = await key_alive(HEARTBEAT_KEY) if limiter_ok else False
    # only the roster store is required to serve sign-ups
    return {
        "status": "ok" if store_ok else "down",
        "dependencies": {
            "store": store_ok,
            "redis": limiter_ok,
            "session_roller": roller_ok,
        },
    }


@router.get("/readiness")
async def readiness():
    store_ok = await db_health()
    return {"ready": store_ok, "store": store_ok}


@router.get("/liveness")
async def liveness():
    return {"alive": True}
