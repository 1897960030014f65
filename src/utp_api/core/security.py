"""身份令牌编解码工具。

令牌仅携带 {用户 ID, 邮箱, 角色, 签发时间}，由进程级密钥签名。
解码成功只说明声明曾由本服务签发，不代表账号当前状态仍然有效；
未配置有效期时不做过期校验，也没有吊销机制。
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import re
from typing import Any
from uuid import UUID

import jwt
from jwt import InvalidTokenError

from utp_api.core.config import get_settings
from utp_api.exceptions import InvalidToken
from utp_api.models.enums import UserRole
from utp_api.models.user import User


@dataclass(frozen=True)
class Claims:
    """解码后的令牌声明。"""

    # 用户 ID（sub）。
    user_id: UUID
    email: str
    role: str
    # 签发时间（iat）。
    issued_at: datetime
    # 原始声明集，便于下游扩展。
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


def issue_access_token(user: User, *, now: datetime | None = None) -> str:
    """签发访问令牌。"""
    settings = get_settings()
    issued_at = now or datetime.now(timezone.utc)
    claims: dict[str, Any] = {
        "sub": str(user.id),
        "email": user.email,
        "role": str(user.role),
        "iat": int(issued_at.timestamp()),
    }
    if settings.auth_access_token_ttl_seconds:
        expires_at = issued_at + timedelta(seconds=settings.auth_access_token_ttl_seconds)
        claims["exp"] = int(expires_at.timestamp())
    return jwt.encode(claims, settings.auth_jwt_secret, algorithm=settings.auth_algorithms[0])


def decode_access_token(token: str) -> Claims:
    """校验签名并还原令牌声明。"""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            key=settings.auth_jwt_secret,
            algorithms=settings.auth_algorithms,
            options={"verify_signature": True, "require": ["sub", "role", "iat"]},
        )
    except InvalidTokenError as exc:
        raise InvalidToken() from exc

    try:
        user_id = UUID(str(payload["sub"]))
    except ValueError as exc:
        raise InvalidToken("令牌主体标识不合法。") from exc

    role = payload.get("role")
    if role not in set(UserRole):
        raise InvalidToken("令牌角色不合法。")

    email = payload.get("email")
    issued_at = payload.get("iat")
    if not isinstance(issued_at, int):
        raise InvalidToken("令牌签发时间不合法。")

    return Claims(
        user_id=user_id,
        email=email if isinstance(email, str) else "",
        role=UserRole(role),
        issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
        raw=payload,
    )


def _is_placeholder_token(token: str) -> bool:
    return ("{{" in token and "}}" in token) or ("${" in token and "}" in token)


def _extract_bearer_token(authorization: str | None) -> str:
    """从 Authorization 头中提取 Bearer token，兼容重复头被逗号拼接的场景。"""
    if not authorization:
        raise InvalidToken("缺少访问令牌。")
    tokens = re.findall(r"Bearer\s+([^,\s]+)", authorization, flags=re.IGNORECASE)
    for candidate in reversed(tokens):
        token = candidate.strip()
        if token and not _is_placeholder_token(token):
            return token
    raise InvalidToken("缺少访问令牌。")


def parse_authorization_header(authorization: str | None) -> Claims:
    """解析认证头并返回令牌声明。"""
    return decode_access_token(_extract_bearer_token(authorization))
