"""用户管理相关请求结构。"""

from pydantic import BaseModel, Field

from utp_api.models.enums import UserRole, UserStatus


class UserCreateRequest(BaseModel):
    """管理员创建用户请求体。"""

    name: str = Field(min_length=1, max_length=128, description="展示名。", examples=["Bob"])
    email: str = Field(
        min_length=5,
        max_length=256,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        description="登录邮箱。",
        examples=["bob@example.com"],
    )
    password: str = Field(min_length=1, max_length=128, description="初始密码。")
    role: UserRole = Field(default=UserRole.USER, description="账号角色。")
    status: UserStatus = Field(default=UserStatus.ACTIVE, description="账号状态。")


class UserUpdateRequest(BaseModel):
    """更新用户资料请求体。"""

    name: str | None = Field(
        default=None,
        min_length=1,
        max_length=128,
        description="新的用户展示名。",
        examples=["Alice Chen"],
    )
    role: UserRole | None = Field(default=None, description="新角色，仅管理员修改生效。")
    status: UserStatus | None = Field(default=None, description="新状态，仅管理员修改生效。")
