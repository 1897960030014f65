"""领域枚举定义。"""

from enum import StrEnum


class UserRole(StrEnum):
    """用户角色。"""

    USER = "user"  # 普通用户，只能访问自己的上传记录。
    EDITOR = "editor"  # 编辑角色，当前授权规则与普通用户一致。
    ADMIN = "admin"  # 管理员，可访问全部用户与上传记录。


class UserStatus(StrEnum):
    """用户状态。"""

    ACTIVE = "active"  # 正常可用。
    INACTIVE = "inactive"  # 停用，默认禁止登录。
    SUSPENDED = "suspended"  # 暂停，默认禁止登录。
    PENDING = "pending"  # 待激活，计入系统统计的待处理用户。


class UploadStatus(StrEnum):
    """上传记录状态。"""

    PENDING = "pending"  # 已接收，等待校验或续传。
    COMPLETED = "completed"  # 处理完成。
    FAILED = "failed"  # 处理失败。


# 允许的上传状态迁移，终态不可回退。
UPLOAD_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    UploadStatus.PENDING: frozenset({UploadStatus.COMPLETED, UploadStatus.FAILED}),
    UploadStatus.COMPLETED: frozenset(),
    UploadStatus.FAILED: frozenset(),
}
