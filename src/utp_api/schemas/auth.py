"""注册、登录与令牌校验请求结构。"""

from pydantic import BaseModel, Field


class AuthRegisterRequest(BaseModel):
    """本地账号注册请求。"""

    name: str = Field(min_length=1, max_length=128, description="展示名。", examples=["Alice"])
    email: str = Field(
        min_length=5,
        max_length=256,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        description="登录邮箱。",
        examples=["alice@example.com"],
    )
    password: str = Field(min_length=1, max_length=128, description="登录密码。", examples=["pw1"])


class AuthLoginRequest(BaseModel):
    """本地账号登录请求。"""

    email: str = Field(min_length=1, max_length=256, description="登录邮箱。", examples=["alice@example.com"])
    password: str = Field(min_length=1, max_length=128, description="登录密码。")
    user_type: str | None = Field(
        default=None,
        description="登录入口类型；传 admin 时要求账号为管理员。",
        examples=["admin"],
    )


class AuthVerifyRequest(BaseModel):
    """令牌校验请求。"""

    token: str = Field(min_length=1, description="待校验的访问令牌。")
