import time
import logging
import json
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
from config.settings import settings
from config.logging_config import get_request_id

logger = logging.getLogger(__name__)

# Paths polled by load balancers; logged at DEBUG only
QUIET_PATHS = {"/api/health"}


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Request/response logging with a per-request ID and duration tracking.

    - Assigns a request ID, exposes it on request.state and the X-Request-ID header
    - Logs method, path, query params and (optionally) the JSON body with sensitive fields masked
    - Logs status and duration; 4xx/5xx and slow requests at WARNING/ERROR
    - Never reads streamed (SSE) response bodies
    """

    def __init__(self, app: ASGIApp, request_id_filter=None):
        super().__init__(app)
        self.request_id_filter = request_id_filter

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or get_request_id()
        if self.request_id_filter:
            self.request_id_filter.request_id = request_id

        request.state.request_id = request_id
        start_time = time.time()

        await self._log_request(request, request_id)

        try:
            response = await call_next(request)

            duration_ms = (time.time() - start_time) * 1000
            self._log_response(request, response, duration_ms, request_id)
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as exc:
            duration_ms = (time.time() - start_time) * 1000
            logger.exception(
                f"Unhandled exception processing request: {str(exc)}",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": duration_ms
                }
            )
            raise
        finally:
            if self.request_id_filter:
                self.request_id_filter.request_id = None

    async def _log_request(self, request: Request, request_id: str):
        """Log details about the incoming request."""
        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client_host": request.client.host if request.client else None,
        }

        if settings.LOG_LEVEL == "DEBUG":
            log_data["headers"] = self._mask_sensitive_headers(dict(request.headers))

        content_type = request.headers.get("content-type", "")
        if settings.LOG_REQUEST_BODY and content_type.startswith("application/json"):
            # request.body() caches the payload so the route can read it again
            body = await request.body()
            try:
                log_data["body"] = self._mask_sensitive_data(json.loads(body))
            except (json.JSONDecodeError, UnicodeDecodeError):
                if len(body) < 1000:
                    log_data["body"] = body.decode('utf-8', errors='replace')

        level = logging.DEBUG if request.url.path in QUIET_PATHS else logging.INFO
        logger.log(level, f"Request: {request.method} {request.url.path}", extra=log_data)

    def _log_response(self, request: Request, response: Response, duration_ms: float, request_id: str):
        """Log the response status and request performance."""
        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2)
        }

        is_stream = response.headers.get("content-type", "").startswith("text/event-stream")
        if settings.LOG_RESPONSE_BODY and not is_stream and hasattr(response, "body"):
            try:
                log_data["body"] = self._mask_sensitive_data(json.loads(response.body))
            except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
                pass

        if response.status_code >= 500:
            logger.error(f"Response: {response.status_code} - {duration_ms:.2f}ms", extra=log_data)
        elif response.status_code >= 400:
            logger.warning(f"Response: {response.status_code} - {duration_ms:.2f}ms", extra=log_data)
        elif duration_ms > settings.LOG_PERFORMANCE_THRESHOLD_MS and not is_stream:
            logger.warning(f"Slow response: {request.method} {request.url.path} - {response.status_code} - {duration_ms:.2f}ms", extra=log_data)
        else:
            logger.info(f"Response: {response.status_code} - {duration_ms:.2f}ms", extra=log_data)

    def _mask_sensitive_headers(self, headers: dict) -> dict:
        """Mask sensitive information in headers."""
        return {
            key: "********" if any(s in key.lower() for s in settings.LOG_SENSITIVE_FIELDS) else value
            for key, value in headers.items()
        }

    def _mask_sensitive_data(self, data):
        """Recursively mask sensitive fields (api keys, credentials) in request payloads."""
        if isinstance(data, dict):
            return {
                key: "********" if any(s in key.lower() for s in settings.LOG_SENSITIVE_FIELDS)
                else self._mask_sensitive_data(value)
                for key, value in data.items()
            }
        if isinstance(data, list):
            return [self._mask_sensitive_data(item) for item in data]
        return data
