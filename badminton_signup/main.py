from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import get_settings
from .db import engine
from .redis_client import close_redis
from .api.routers import health, auth, sessions, players, cron, metrics
from .observability.logging import setup_logging
from .middleware.request_context import RequestContextMiddleware
from .observability.metrics import MetricsHTTPMiddleware
import uvicorn

settings = get_settings()
setup_logging()

ROUTERS = (health, auth, sessions, players, cron, metrics)


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    await close_redis()
    await engine.dispose()


def _origins() -> list[str]:
    # FRONTEND_ORIGIN may list several origins, comma separated
    return [o.strip() for o in settings.FRONTEND_ORIGIN.split(",") if o.strip()]


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)

    # the auth gate rides on cookies
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", settings.REQUEST_ID_HEADER],
        expose_headers=[settings.REQUEST_ID_HEADER],
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(MetricsHTTPMiddleware)

    for module in ROUTERS:
        app.include_router(module.router)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("badminton_signup.main:app", host=settings.APP_HOST, port=settings.APP_PORT, reload=settings.ENV == "dev")
