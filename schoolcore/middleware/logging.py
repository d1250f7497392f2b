import logging
import os
import sys
import time
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from schoolcore.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [school: %(school_id)s] [request: %(request_id)s] %(message)s"

# Scope of the request being served; "-" outside a request
current_school_id: ContextVar[str] = ContextVar("current_school_id", default="-")
current_request_id: ContextVar[str] = ContextVar("current_request_id", default="-")


class RequestContextFilter(logging.Filter):
    """Stamp every record with the school and request it was logged for."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.school_id = current_school_id.get()
        record.request_id = current_request_id.get()
        return True


def setup_logging(log_file: Optional[str] = None):
    """Configure application logging."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    log_file = log_file or settings.LOG_FILE

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        os.makedirs(Path(log_file).parent, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    context_filter = RequestContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)

    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers)

    # Set specific log levels for noisy libraries
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    # Session migrations are always recorded
    logging.getLogger("schoolcore.audit").setLevel(logging.INFO)

    logger = logging.getLogger("schoolcore")
    logger.setLevel(log_level)

    return logger


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with an id and the caller's school.

    Both are bound for the lifetime of the request, so service and client
    log lines carry them too. The id is returned as `X-Request-ID`.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.logger = logging.getLogger("schoolcore.request")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        school_id = request.headers.get(settings.SCHOOL_ID_HEADER) or "-"
        request.state.request_id = request_id

        school_token = current_school_id.set(school_id)
        request_token = current_request_id.set(request_id)
        start_time = time.time()
        try:
            self.logger.info(f"{request.method} {request.url.path} started")
            response = await call_next(request)
            duration = time.time() - start_time

            log = self.logger.warning if response.status_code >= 400 else self.logger.info
            log(f"{request.method} {request.url.path} -> {response.status_code} in {duration:.3f}s")

            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as e:
            self.logger.error(f"{request.method} {request.url.path} failed: {e}", exc_info=True)
            raise
        finally:
            current_request_id.reset(request_token)
            current_school_id.reset(school_token)


def add_logging_middleware(app: FastAPI):
    """Add request logging middleware to the FastAPI app."""
    app.add_middleware(RequestLoggingMiddleware)
