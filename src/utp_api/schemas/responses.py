"""接口成功响应业务字段结构定义。

说明：
1. 普通接口统一返回 `SuccessResponse[data=...]`，统计接口返回 `StatsResponse[stats=...]`。
2. 字段描述会直接用于 Swagger 展示，便于联调时理解含义。
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from utp_api.schemas.common import BaseSchema


class HealthStatusData(BaseSchema):
    """健康检查返回结构。"""

    status: str = Field(description="健康状态值，常见为 ok 或 ready。")


class UserData(BaseSchema):
    """用户资料结构，不包含口令哈希。"""

    id: UUID = Field(description="用户 ID。")
    display_name: str = Field(description="展示名。")
    email: str = Field(description="登录邮箱。")
    role: str = Field(description="用户角色。")
    status: str = Field(description="用户状态。")
    joined_at: datetime = Field(description="注册时间。")
    upload_count: int = Field(description="名下上传记录数量。")
    last_login_at: datetime | None = Field(default=None, description="最近一次登录时间。")


class AuthSessionData(BaseSchema):
    """注册/登录结果结构。"""

    access_token: str = Field(description="访问令牌。")
    token_type: str = Field(default="bearer", description="令牌类型。")
    user: UserData = Field(description="当前登录用户信息。")


class ClaimsData(BaseSchema):
    """令牌声明结构。"""

    user_id: UUID = Field(description="用户 ID。")
    email: str = Field(description="签发时的邮箱。")
    role: str = Field(description="签发时的角色。")
    issued_at: datetime = Field(description="签发时间。")


class LogoutData(BaseSchema):
    """登出结果结构。"""

    logged_out: bool = Field(description="是否已完成登出。")


class UploadData(BaseSchema):
    """上传记录结构。"""

    id: UUID = Field(description="上传记录 ID。")
    owner_id: UUID = Field(description="归属用户 ID。")
    file_name: str = Field(description="原始文件名。")
    file_size_mb: float = Field(description="文件大小（MB，两位小数）。")
    uploaded_at: datetime = Field(description="上传时间。")
    record_count: int = Field(description="记录条数（估算值）。")
    storage_location: str = Field(description="存储对象键。")
    status: str = Field(description="处理状态。")


class DeletedData(BaseSchema):
    """删除结果结构。"""

    id: UUID = Field(description="被删除的资源 ID。")
    deleted: bool = Field(description="是否已删除。")


class UserStatsData(BaseSchema):
    """单用户上传统计结构。"""

    total_uploads: int = Field(description="上传次数。")
    total_records: int = Field(description="记录条数合计。")
    total_size_mb: float = Field(description="文件大小合计（MB）。")
    last_upload_at: datetime | None = Field(default=None, description="最近一次上传时间。")


class SystemStatsData(BaseSchema):
    """系统统计结构。"""

    total_users: int = Field(description="用户总数。")
    active_users: int = Field(description="active 状态用户数。")
    pending_users: int = Field(description="pending 状态用户数。")
    total_uploads: int = Field(description="上传记录总数。")
    total_records: int = Field(description="记录条数合计。")
    total_storage_mb: float = Field(description="存储占用合计（MB）。")
