import logging
import time
import uuid
from contextvars import ContextVar
from typing import Optional
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from config import logger

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

def _completion_level(status_code: int, cache_status: Optional[str]) -> int:
    if status_code >= 500:
        return logging.ERROR
    if cache_status == "STALE":
        return logging.WARNING
    return logging.INFO

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs how it was served.

    Responses answered from stale cache are logged at WARNING so degraded
    service shows up without a metrics backend.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        started = time.perf_counter()

        logger.info(
            "%s %s started",
            request.method, request.url.path,
            extra={"request_id": request_id, "query_keys": sorted(request.query_params.keys())}
        )

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "%s %s raised after %.1fms",
                request.method, request.url.path, (time.perf_counter() - started) * 1000,
                extra={"request_id": request_id}
            )
            raise
        finally:
            request_id_var.reset(token)

        elapsed = time.perf_counter() - started
        cache_status = response.headers.get("X-Cache")
        logger.log(
            _completion_level(response.status_code, cache_status),
            "%s %s -> %d (%s) in %.1fms",
            request.method, request.url.path, response.status_code, cache_status or "-", elapsed * 1000,
            extra={
                "request_id": request_id,
                "data_sources": response.headers.get("X-Data-Sources"),
            }
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed:.3f}s"
        return response

def get_request_id() -> Optional[str]:
    return request_id_var.get()
