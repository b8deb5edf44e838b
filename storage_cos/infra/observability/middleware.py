"""HTTP observability: request metrics, request ids and access logs.

With ``TRACE_HTTP`` enabled the request and response bodies are logged too,
after credentials have been masked. The config endpoints carry the secret id
and secret key in both directions, so masking covers those keys explicitly.
"""

import json
import logging
import re
import time
import uuid
from typing import Any

from fastapi import Request
from starlette.concurrency import iterate_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from storage_cos.common.config import get_settings
from storage_cos.infra.observability.metrics import LATENCY, REQUESTS

logger = logging.getLogger("http")

MASK = "***"
MAX_LOGGED_BODY = 2048

SENSITIVE_KEYS = frozenset(
    {
        "secretkey",
        "secret_key",
        "secretid",
        "secret_id",
        "password",
        "secret",
        "token",
        "api_key",
        "x-api-key",
        "authorization",
    }
)

_TEXT_PATTERNS = (
    re.compile(r"(?i)authorization\s*:\s*bearer\s+[A-Za-z0-9\-_.]+"),
    re.compile(
        r"(?i)(secretkey|secret_key|secretid|secret_id|token|secret|password|authorization)"
        r"\s*[:=]\s*[^\s&]+"
    ),
)


def mask_mapping(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {
            k: MASK
            if isinstance(k, str) and k.lower() in SENSITIVE_KEYS
            else mask_mapping(v)
            for k, v in obj.items()
        }
    if isinstance(obj, list):
        return [mask_mapping(x) for x in obj]
    return obj


def mask_text(text: str) -> str:
    """Mask ``secretKey=...`` style fragments in bodies that are not JSON."""
    for pattern in _TEXT_PATTERNS:
        text = pattern.sub(
            lambda m: re.split(r"[:=]", m.group(0), maxsplit=1)[0] + f"={MASK}",
            text,
        )
    return text


def render_body(raw: bytes) -> str | None:
    if not raw:
        return None
    decoded = raw.decode("utf-8", errors="replace")
    try:
        parsed = json.loads(decoded)
    except ValueError:
        text = mask_text(decoded)
    else:
        text = json.dumps(mask_mapping(parsed), ensure_ascii=False)
    if len(text) > MAX_LOGGED_BODY:
        text = text[:MAX_LOGGED_BODY] + "...<truncated>"
    return text


def _route_label(request: Request) -> str:
    # Route templates keep object keys out of metric labels
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class MetricsMiddleware(BaseHTTPMiddleware):
    async def _capture_request(self, request: Request) -> str | None:
        raw_body = await request.body()

        async def receive():
            return {"type": "http.request", "body": raw_body, "more_body": False}

        # Downstream handlers read the body again from the replayed message
        request._receive = receive
        return render_body(raw_body)

    async def _capture_response(self, response: Response) -> str | None:
        chunks = [chunk async for chunk in response.body_iterator]
        body = b"".join(chunks)
        response.body_iterator = iterate_in_threadpool(iter([body]))
        return render_body(body)

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        client_ip = request.client.host if request.client else None
        trace_http = get_settings().TRACE_HTTP

        request_body = await self._capture_request(request) if trace_http else None

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "request_error method=%s path=%s request_id=%s",
                request.method,
                request.url.path,
                request_id,
                extra={
                    "extra": {
                        "method": request.method,
                        "route": request.url.path,
                        "status": 500,
                        "duration_ms": round((time.perf_counter() - start) * 1000, 3),
                        "request_id": request_id,
                        "exception": repr(exc),
                    }
                },
            )
            raise

        elapsed = time.perf_counter() - start
        route = _route_label(request)
        REQUESTS.labels(request.method, route, str(response.status_code)).inc()
        LATENCY.labels(request.method, route).observe(elapsed)
        response.headers.setdefault("X-Request-Id", request_id)

        fields: dict[str, Any] = {
            "method": request.method,
            "route": route,
            "query": mask_text(request.url.query),
            "status": response.status_code,
            "duration_ms": round(elapsed * 1000, 3),
            "request_id": request_id,
            "client_ip": client_ip,
        }
        if trace_http:
            fields["request_body"] = request_body
            fields["response_body"] = await self._capture_response(response)

        logger.log(
            _level_for(response.status_code),
            "request method=%s route=%s status=%s duration_ms=%.3f request_id=%s",
            request.method,
            route,
            response.status_code,
            fields["duration_ms"],
            request_id,
            extra={"extra": fields},
        )
        return response
