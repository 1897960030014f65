"""响应包裹结构，仅用于在线接口文档与响应校验。"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class _Envelope(BaseSchema):
    request_id: str = Field(description="请求追踪 ID，与响应头 X-Request-Id 一致。")


class ErrorResponse(_Envelope):
    """失败响应。"""

    success: bool = Field(default=False, description="失败时恒为 false。")
    error: str = Field(description="面向用户的错误提示。")
    code: str = Field(description="稳定错误码，例如 VALIDATION_ERROR。")
    details: dict[str, Any] = Field(default_factory=dict, description="错误上下文，含请求路径与处理建议。")


class SuccessResponse(_Envelope, Generic[T]):
    """成功响应，业务数据位于 `data`。"""

    success: bool = Field(default=True, description="成功时恒为 true。")
    data: T = Field(description="业务数据。")
    meta: dict[str, Any] = Field(default_factory=dict, description="请求元信息与分页等扩展字段。")


class StatsResponse(_Envelope, Generic[T]):
    """统计接口成功响应，统计结果位于 `stats`。"""

    success: bool = Field(default=True, description="成功时恒为 true。")
    stats: T = Field(description="统计结果。")
    meta: dict[str, Any] = Field(default_factory=dict, description="请求元信息。")
