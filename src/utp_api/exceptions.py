"""业务异常定义与应用异常处理注册。

业务异常统一继承 ``HTTPException`` 并携带稳定错误码，
服务层直接抛出，路由层无需再做二次翻译。
"""

import logging
import warnings
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from utp_api.utils.response import DEFAULT_ERROR_MESSAGE, error_payload

logger = logging.getLogger(__name__)


class ServiceError(HTTPException):
    """业务异常基类。"""

    http_status: int = status.HTTP_400_BAD_REQUEST
    code: str = "BAD_REQUEST"
    default_message: str = "请求参数不合法。"

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(
            status_code=self.http_status,
            detail={"code": self.code, "message": self.message, "details": details},
        )

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(ServiceError):
    """输入形态、类型或大小不合法，可由调用方修正。"""

    http_status = status.HTTP_422_UNPROCESSABLE_CONTENT
    code = "VALIDATION_ERROR"
    default_message = "请求参数校验失败。"

    def __init__(self, message: str | None = None, *, purge_location: str | None = None, **details: Any) -> None:
        # 传输层已落盘的文件需要由调用方按该位置清理。
        self.purge_location = purge_location
        if purge_location is not None:
            details["purge_location"] = purge_location
        super().__init__(message, **details)


class NotFound(ServiceError):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "请求资源不存在。"


class OwnerNotFound(NotFound):
    code = "OWNER_NOT_FOUND"
    default_message = "上传记录的归属用户不存在。"


class Forbidden(ServiceError):
    http_status = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_message = "无权限访问该资源。"


class AccountDisabled(Forbidden):
    code = "ACCOUNT_DISABLED"
    default_message = "账号已停用或被暂停。"


class DuplicateEmail(ServiceError):
    http_status = status.HTTP_409_CONFLICT
    code = "DUPLICATE_EMAIL"
    default_message = "该邮箱已被注册。"


class IdentityInUse(ServiceError):
    http_status = status.HTTP_409_CONFLICT
    code = "IDENTITY_IN_USE"
    default_message = "用户仍拥有上传记录，无法删除。"


class InvalidToken(ServiceError):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_TOKEN"
    default_message = "访问令牌无效。"


class BadCredential(ServiceError):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "BAD_CREDENTIAL"
    default_message = "邮箱或密码错误。"


class StoreUnavailable(ServiceError):
    """存储层瞬时故障，调用方可退避重试。"""

    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORE_UNAVAILABLE"
    default_message = "存储服务暂不可用。"


class InconsistencyWarning(UserWarning):
    """非致命的数据不一致（例如上传计数漂移），只记录不抛出。"""


def report_inconsistency(message: str, **fields: Any) -> None:
    """记录数据不一致告警，不中断当前操作。"""
    rendered = " ".join(f"{key}={value}" for key, value in fields.items())
    text = f"{message} {rendered}".strip()
    logger.warning("inconsistency: %s", text)
    warnings.warn(text, InconsistencyWarning, stacklevel=2)


# 状态码 -> (错误码, 默认提示, 处理建议)；业务异常自带错误码时只用于兜底。
_HTTP_DEFAULTS: dict[int, tuple[str, str, str]] = {
    status.HTTP_400_BAD_REQUEST: ("BAD_REQUEST", "请求参数不合法。", "请检查请求参数后重试。"),
    status.HTTP_401_UNAUTHORIZED: ("UNAUTHORIZED", "未登录或登录状态已失效。", "请重新登录并携带有效访问令牌。"),
    status.HTTP_403_FORBIDDEN: ("FORBIDDEN", "无权限访问该资源。", "请确认当前账号角色是否具备该操作权限。"),
    status.HTTP_404_NOT_FOUND: (
        "NOT_FOUND",
        "请求资源不存在。",
        "请确认资源 ID 是否正确，或资源是否已被删除。",
    ),
    status.HTTP_409_CONFLICT: ("CONFLICT", "请求与当前数据状态冲突。", "请刷新页面获取最新数据后重试。"),
    status.HTTP_413_CONTENT_TOO_LARGE: ("PAYLOAD_TOO_LARGE", "上传内容过大。", "请压缩或拆分文件后重试。"),
    status.HTTP_422_UNPROCESSABLE_CONTENT: (
        "VALIDATION_ERROR",
        "请求参数校验失败。",
        "请根据错误字段提示修正请求参数后重试。",
    ),
    status.HTTP_503_SERVICE_UNAVAILABLE: ("STORE_UNAVAILABLE", "存储服务暂不可用。", "请稍后退避重试。"),
}
_FALLBACK_DEFAULTS = ("HTTP_ERROR", "请求处理失败。", "请稍后重试，若持续失败请联系管理员。")

# 框架内置的英文错误信息映射到统一中文提示。
_RAW_DETAIL_STATUS = {
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not authenticated": status.HTTP_401_UNAUTHORIZED,
    "unauthorized": status.HTTP_401_UNAUTHORIZED,
    "not found": status.HTTP_404_NOT_FOUND,
}


def _http_defaults(status_code: int) -> tuple[str, str, str]:
    return _HTTP_DEFAULTS.get(status_code, _FALLBACK_DEFAULTS)


def _normalize_raw_detail_message(raw: str) -> str:
    mapped_status = _RAW_DETAIL_STATUS.get(raw.strip().lower())
    if mapped_status is None:
        return raw
    return _http_defaults(mapped_status)[1]


def _parse_http_detail(detail: object, status_code: int) -> tuple[str, str, dict[str, object]]:
    """拆解异常 detail，返回 (错误码, 提示信息, 细节)。

    业务异常的 detail 固定为 ``{"code", "message", "details"}``；
    框架或第三方抛出的 detail 多为字符串，按状态码补齐默认值。
    """
    code, message, suggestion = _http_defaults(status_code)
    details: dict[str, object] = {"status_code": status_code, "suggestion": suggestion}

    if isinstance(detail, dict):
        code = str(detail.get("code") or code)
        message = str(detail.get("message") or message)
        extra = detail.get("details")
        if isinstance(extra, dict):
            details.update(extra)
        elif extra is not None:
            details["details"] = extra
    elif isinstance(detail, str):
        message = _normalize_raw_detail_message(detail)
    elif detail is not None:
        details["detail"] = detail

    details["reason"] = code.lower()
    return code, message, details


async def http_exception_handler(request: Request, exc: HTTPException):
    """将协议异常统一包装为标准错误结构。"""
    code, message, details = _parse_http_detail(exc.detail, exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(request, code=code, message=message, details=details),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """统一处理请求参数校验错误。"""
    normalized_errors = [
        {
            "field": ".".join(str(item) for item in err.get("loc", []) if item != "body"),
            "message": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=error_payload(
            request,
            code="VALIDATION_ERROR",
            message="请求参数校验失败。",
            details={
                "status_code": status.HTTP_422_UNPROCESSABLE_CONTENT,
                "reason": "validation_error",
                "suggestion": _http_defaults(status.HTTP_422_UNPROCESSABLE_CONTENT)[2],
                "errors": normalized_errors,
            },
        ),
    )


async def unexpected_exception_handler(request: Request, exc: Exception):
    """处理未捕获异常，避免内部细节泄露。"""
    logger.exception("unhandled error path=%s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload(
            request,
            code="INTERNAL_ERROR",
            message=DEFAULT_ERROR_MESSAGE,
            details={
                "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
                "reason": "unexpected_exception",
                "suggestion": "请稍后重试，若持续失败请联系管理员并提供 request_id。",
            },
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """集中注册异常处理器。"""
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(unexpected_exception_handler)
