"""授权决策表。

所有“本人或管理员”判断统一在此完成，
避免各路由各自拼装角色比较导致规则漂移。
本模块无状态、无存储访问。
"""

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from utp_api.exceptions import Forbidden
from utp_api.models.enums import UserRole


class Action(StrEnum):
    """受控动作。"""

    READ_OWN = "read_own"  # 读取自己名下的资源。
    READ_ANY = "read_any"  # 读取任意用户的资源。
    WRITE_OWN = "write_own"  # 修改自己名下的资源。
    DELETE_ANY = "delete_any"  # 删除资源；非管理员仅限自己名下。
    ADMIN_ONLY = "admin_only"  # 仅管理员可执行的动作。


class Decision(StrEnum):
    ALLOW = "allow"
    DENY = "deny"


# 资源属主本人即可放行的动作。
OWNER_ACTIONS = frozenset({Action.READ_OWN, Action.WRITE_OWN, Action.DELETE_ANY})


@dataclass(frozen=True)
class Actor:
    """发起请求的身份，来自已解码的令牌声明。"""

    user_id: UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def decide(actor: Actor, action: Action, resource_owner_id: UUID | None = None) -> Decision:
    """给出授权结论。

    判定规则：
    1. 管理员放行一切动作。
    2. READ_OWN / WRITE_OWN / DELETE_ANY 仅当操作者就是资源属主时放行。
    3. 其余情况一律拒绝。
    """
    if actor.is_admin:
        return Decision.ALLOW
    if action in OWNER_ACTIONS and resource_owner_id is not None and actor.user_id == resource_owner_id:
        return Decision.ALLOW
    return Decision.DENY


def is_allowed(actor: Actor, action: Action, resource_owner_id: UUID | None = None) -> bool:
    return decide(actor, action, resource_owner_id) is Decision.ALLOW


def ensure_allowed(actor: Actor, action: Action, resource_owner_id: UUID | None = None) -> None:
    """授权不通过时抛出 Forbidden。"""
    if not is_allowed(actor, action, resource_owner_id):
        raise Forbidden(action=str(action))
