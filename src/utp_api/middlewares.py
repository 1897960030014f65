"""应用中间件注册。"""

import logging
import re
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request

logger = logging.getLogger("utp_api.access")

REQUEST_ID_HEADER = "X-Request-Id"
# 仅沿用形态安全的上游追踪 ID，避免日志注入。
_UPSTREAM_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


def _resolve_request_id(request: Request) -> str:
    upstream = request.headers.get(REQUEST_ID_HEADER, "")
    if _UPSTREAM_REQUEST_ID.match(upstream):
        return upstream
    return str(uuid4())


async def request_context_middleware(request: Request, call_next):
    """为每个请求分配追踪 ID 并记录一行访问日志。"""
    request.state.request_id = _resolve_request_id(request)
    request.state.request_started_at = perf_counter()

    response = await call_next(request)

    elapsed_ms = round((perf_counter() - request.state.request_started_at) * 1000, 2)
    response.headers[REQUEST_ID_HEADER] = request.state.request_id
    response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
    logger.info(
        "%s %s status=%s elapsed_ms=%s request_id=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request.state.request_id,
    )
    return response


def register_middlewares(app: FastAPI) -> None:
    app.middleware("http")(request_context_middleware)
