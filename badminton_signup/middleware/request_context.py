from __future__ import annotations
import logging
import time
from datetime import datetime, timezone
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from ..observability.logging import get_request_id, bind_record, request_id_var
from ..config import get_settings
from ..auth.deps import has_role

S = get_settings()
log = logging.getLogger("app.request")

class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = get_request_id(request)
        token = request_id_var.set(rid)
        start = time.perf_counter()
        timestamp = datetime.now(timezone.utc).isoformat()

        # Which gates the caller has passed (never the token itself)
        if has_role(request, "admin"):
            role = "admin"
        elif has_role(request, "user"):
            role = "user"
        else:
            role = "anonymous"

        try:
            try:
                response = await call_next(request)
            except Exception:
                dur_ms = int((time.perf_counter() - start) * 1000)
                rec = bind_record(logging.LogRecord(
                    name=log.name, level=logging.ERROR, pathname=__file__, lineno=0,
                    msg="unhandled_error", args=(), exc_info=None
                ), request_id=rid, extra=f"timestamp={timestamp} path={request.url.path} method={request.method} ms={dur_ms} role={role}")
                log.handle(rec)
                raise

            dur_ms = int((time.perf_counter() - start) * 1000)
            response.headers[S.REQUEST_ID_HEADER] = rid
            rec = bind_record(logging.LogRecord(
                name=log.name, level=logging.INFO, pathname=__file__, lineno=0,
                msg="request", args=(), exc_info=None
            ), request_id=rid, extra=f"timestamp={timestamp} path={request.url.path} method={request.method} status={response.status_code} ms={dur_ms} role={role}")
            log.handle(rec)
            return response
        finally:
            request_id_var.reset(token)
