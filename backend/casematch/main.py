"""
FastAPI application exposing the CaseMatch team formation engine.
"""
import contextvars
import logging
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import configure_logging
from .routers import matching
from .settings import get_settings

# Context variables for request-scoped logging
_ctx_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)
_ctx_client_ip: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("client_ip", default=None)

# Install a LogRecord factory to automatically attach request context to LogRecords.
_original_factory = logging.getLogRecordFactory()


def _record_factory(*args, **kwargs):
    record = _original_factory(*args, **kwargs)
    rid = _ctx_request_id.get()
    cip = _ctx_client_ip.get()
    if rid is not None:
        record.request_id = rid
    if cip is not None:
        record.client_ip = cip
    return record


logging.setLogRecordFactory(_record_factory)

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(title=settings.app_name, debug=settings.debug, version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins or ["*"],
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


######## Structured Logging & Request ID Middleware ########
class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get('X-Request-ID', str(uuid.uuid4()))
        xff = request.headers.get('X-Forwarded-For')
        if xff:
            client_ip = xff.split(',')[0].strip()
        else:
            client = getattr(request, 'client', None)
            client_ip = client.host if client else None
        request.state.request_id = request_id
        _ctx_request_id.set(request_id)
        _ctx_client_ip.set(client_ip)
        start = time.time()
        logger = logging.getLogger('request')
        logger.info('request.start method=%s path=%s', request.method, request.url.path)
        try:
            response = await call_next(request)
        except Exception:
            logger.exception('request.error')
            raise
        duration_ms = int((time.time() - start) * 1000)
        response.headers['X-Request-ID'] = request_id
        logger.info('request.end status=%s dur_ms=%s', response.status_code, duration_ms)
        return response


app.add_middleware(RequestIDMiddleware)

app.include_router(matching.router, prefix='/matching', tags=['matching'])


@app.get('/health')
async def health():
    return {'status': 'ok'}
