"""请求上下文依赖。

职责:
1. 在边界处解析并校验一次访问令牌。
2. 生成后续路由统一使用的 RequestContext，向服务层传递操作者身份。

令牌声明被视为能力凭证，不回查用户表；
角色或状态在令牌有效期内的变化不会立即生效。
"""

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from utp_api.core.security import Claims, parse_authorization_header
from utp_api.services.authorization import Action, Actor, ensure_allowed

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class RequestContext:
    """请求上下文。

    该对象在路由层作为统一输入，避免每个接口重复解析令牌。
    """

    # 当前请求用户 ID。
    user_id: UUID
    # 当前请求用户邮箱。
    email: str
    # 当前请求用户角色。
    role: str
    # 令牌声明原始信息。
    claims: Claims

    @property
    def actor(self) -> Actor:
        return Actor(user_id=self.user_id, role=self.role)


def get_current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Claims:
    """提取并解析当前请求令牌声明。"""
    authorization = None
    if credentials is not None and credentials.credentials:
        authorization = f"{credentials.scheme} {credentials.credentials}"
    return parse_authorization_header(authorization)


def get_request_context(claims: Claims = Depends(get_current_claims)) -> RequestContext:
    """由令牌声明构造请求上下文。"""
    return RequestContext(
        user_id=claims.user_id,
        email=claims.email,
        role=claims.role,
        claims=claims,
    )


def require_admin(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """路由级管理员限制。"""
    ensure_allowed(ctx.actor, Action.ADMIN_ONLY)
    return ctx
