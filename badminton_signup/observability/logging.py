from __future__ import annotations
import contextvars
import logging
import re
import sys
import uuid
from pythonjsonlogger import jsonlogger
from fastapi import Request
from ..config import get_settings

S = get_settings()

# set per request by RequestContextMiddleware; read by every log record
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")

# client-supplied ids end up in logs verbatim
_SAFE_RID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get()
        if not hasattr(record, "extra"):
            record.extra = ""
        return True


def setup_logging(level: str | None = None) -> None:
    """JSON lines on stdout, one handler on the root logger."""
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(levelname)s %(name)s %(message)s %(asctime)s %(request_id)s %(extra)s",
            static_fields={"service": S.APP_NAME, "env": S.ENV},
        )
    )
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)
    root.setLevel(level or S.LOG_LEVEL)

    logging.getLogger("uvicorn.access").setLevel("WARNING")
    logging.getLogger("sqlalchemy.engine").setLevel("WARNING")


def get_request_id(req: Request) -> str:
    rid = req.headers.get(S.REQUEST_ID_HEADER, "")
    return rid if _SAFE_RID.match(rid) else uuid.uuid4().hex


def bind_record(record: logging.LogRecord, **extra):
    for k, v in extra.items():
        setattr(record, k, v or "")
    return record
