"""统一响应结构工具。

成功：``{"success": true, "request_id", <key>, "meta"}``，``<key>`` 默认为 ``data``，
统计类接口使用 ``stats``。
失败：``{"success": false, "request_id", "error", "code", "details"}``。
"""

from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from fastapi import Request

DEFAULT_ERROR_MESSAGE = "internal server error"


def _request_id(request: Request) -> str:
    # 中间件之外构造的请求（例如直接调用处理器）没有追踪 ID。
    return getattr(request.state, "request_id", "")


def _elapsed_ms(request: Request) -> int | None:
    started_at = getattr(request.state, "request_started_at", None)
    if not isinstance(started_at, float):
        return None
    return int((perf_counter() - started_at) * 1000)


def _request_trace(request: Request) -> dict[str, Any]:
    """成功与失败响应共用的请求追踪字段。"""
    return {
        "method": request.method.upper(),
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


def success(
    request: Request,
    data: Any,
    meta: dict[str, Any] | None = None,
    *,
    key: str = "data",
) -> dict[str, Any]:
    """构造统一成功响应结构。"""
    final_meta = _request_trace(request)
    final_meta["process_ms"] = _elapsed_ms(request)
    final_meta.update(meta or {})
    return {
        "success": True,
        "request_id": _request_id(request),
        key: data,
        "meta": final_meta,
    }


def error_payload(
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """构造统一错误响应结构。"""
    final_details = _request_trace(request)
    final_details.update(details or {})
    return {
        "success": False,
        "request_id": _request_id(request),
        "error": message,
        "code": code,
        "details": final_details,
    }
