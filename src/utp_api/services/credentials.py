"""本地账号凭据存储。

负责用户注册、口令校验、资料更新与上传计数维护。
本模块不做角色授权，调用方需先经过授权策略判定。
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from utp_api.core.config import get_settings
from utp_api.db.session import run_with_store_retry
from utp_api.exceptions import (
    BadCredential,
    DuplicateEmail,
    IdentityInUse,
    NotFound,
    ValidationError,
    report_inconsistency,
)
from utp_api.models.base import utc_now
from utp_api.models.enums import UserRole, UserStatus
from utp_api.models.upload import UploadRecord
from utp_api.models.user import User

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(value: str) -> str:
    """标准化邮箱字段（去空格 + 小写），唯一性按大小写不敏感处理。"""
    return value.strip().lower()


def hash_password(password: str) -> str:
    """使用 PBKDF2-SHA256 生成加盐口令哈希。"""
    settings = get_settings()
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt,
        settings.auth_password_hash_iterations,
    )
    salt_b64 = base64.b64encode(salt).decode("ascii")
    digest_b64 = base64.b64encode(digest).decode("ascii")
    return f"pbkdf2_sha256${settings.auth_password_hash_iterations}${salt_b64}${digest_b64}"


def verify_password(password: str, password_hash: str) -> bool:
    """校验口令是否匹配。"""
    try:
        algorithm, iterations_text, salt_b64, expected_digest_b64 = password_hash.split("$", 3)
        if algorithm != "pbkdf2_sha256":
            return False
        iterations = int(iterations_text)
        salt = base64.b64decode(salt_b64.encode("ascii"))
        expected_digest = base64.b64decode(expected_digest_b64.encode("ascii"))
    except (ValueError, TypeError, binascii.Error):
        return False

    actual_digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt,
        iterations,
    )
    return hmac.compare_digest(actual_digest, expected_digest)


def _validate_role(role: str) -> UserRole:
    try:
        return UserRole(role)
    except ValueError as exc:
        raise ValidationError("未知的用户角色。", field="role", value=str(role)) from exc


def _validate_status(value: str) -> UserStatus:
    try:
        return UserStatus(value)
    except ValueError as exc:
        raise ValidationError("未知的用户状态。", field="status", value=str(value)) from exc


def _validate_display_name(display_name: str | None) -> str:
    candidate = (display_name or "").strip()
    if not candidate:
        raise ValidationError("展示名不能为空。", field="display_name")
    if len(candidate) > 128:
        raise ValidationError("展示名过长。", field="display_name")
    return candidate


def _find_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def _next_joined_at(db: Session) -> datetime:
    """返回严格晚于已有注册时间的时刻，同一时钟刻度内注册仍保持先后顺序。"""
    joined_at = utc_now()
    latest = db.execute(select(func.max(User.joined_at))).scalar_one()
    if latest is None:
        return joined_at
    if latest.tzinfo is None:
        # SQLite 读回的时间不带时区。
        latest = latest.replace(tzinfo=timezone.utc)
    return max(joined_at, latest + timedelta(microseconds=1))


def register_user(
    db: Session,
    *,
    display_name: str,
    email: str,
    password: str,
    role: str = UserRole.USER,
    status: str = UserStatus.ACTIVE,
) -> User:
    """注册新用户，邮箱冲突时抛出 DuplicateEmail。"""
    name = _validate_display_name(display_name)
    normalized_email = normalize_email(email or "")
    if not normalized_email or len(normalized_email) > 256 or not EMAIL_PATTERN.match(normalized_email):
        raise ValidationError("邮箱格式不合法。", field="email")
    if not password:
        raise ValidationError("密码不能为空。", field="password")
    user_role = _validate_role(role)
    user_status = _validate_status(status)
    password_hash = hash_password(password)

    def _create() -> User:
        if _find_by_email(db, normalized_email) is not None:
            raise DuplicateEmail(email=normalized_email)
        user = User(
            id=uuid4(),
            display_name=name,
            email=normalized_email,
            password_hash=password_hash,
            role=user_role,
            status=user_status,
            joined_at=_next_joined_at(db),
            upload_count=0,
            last_login_at=None,
        )
        db.add(user)
        try:
            db.flush()
        except IntegrityError as exc:
            # 并发注册同一邮箱时由唯一约束兜底。
            db.rollback()
            raise DuplicateEmail(email=normalized_email) from exc
        return user

    user = run_with_store_retry(db, _create, action="user.register")
    logger.info("user registered user_id=%s role=%s", user.id, user.role)
    return user


def authenticate(db: Session, *, email: str, password: str) -> User:
    """按邮箱校验口令，成功后刷新最近登录时间。

    不检查账号状态，是否允许 inactive/suspended 账号继续由调用方决定。
    """
    normalized_email = normalize_email(email or "")

    def _lookup() -> User | None:
        return _find_by_email(db, normalized_email)

    user = run_with_store_retry(db, _lookup, action="user.authenticate")
    if user is None:
        raise NotFound("用户不存在。", resource="user")
    if not verify_password(password or "", user.password_hash):
        raise BadCredential()

    user.last_login_at = datetime.now(timezone.utc)
    run_with_store_retry(db, db.flush, action="user.touch_login")
    return user


def get_user(db: Session, user_id: UUID) -> User:
    """按 ID 查询用户。"""
    user = run_with_store_retry(db, lambda: db.get(User, user_id), action="user.get")
    if user is None:
        raise NotFound("用户不存在。", resource="user", user_id=str(user_id))
    return user


def list_users(db: Session) -> list[User]:
    """按注册先后顺序列出全部用户。"""

    def _list() -> list[User]:
        return list(db.execute(select(User).order_by(User.joined_at, User.id)).scalars().all())

    return run_with_store_retry(db, _list, action="user.list")


def update_profile(
    db: Session,
    user_id: UUID,
    *,
    display_name: str | None = None,
    role: str | None = None,
    status: str | None = None,
) -> User:
    """部分更新用户资料；角色与状态的变更权限由调用方校验。"""
    user = get_user(db, user_id)
    if display_name is not None:
        user.display_name = _validate_display_name(display_name)
    if role is not None:
        user.role = _validate_role(role)
    if status is not None:
        user.status = _validate_status(status)
    run_with_store_retry(db, db.flush, action="user.update")
    return user


def _expire_cached_counter(db: Session, user_id: UUID) -> None:
    """批量更新绕过了会话缓存，需让已加载实例重新读取计数。"""
    for instance in list(db.identity_map.values()):
        if isinstance(instance, User) and instance.id == user_id:
            db.expire(instance, ["upload_count"])


def increment_upload_count(db: Session, user_id: UUID, delta: int) -> None:
    """原子增减用户上传计数。

    计数不会被减到负数：若结果会小于 0，则钳制为 0 并上报不一致告警。
    """

    def _apply() -> None:
        result = db.execute(
            update(User)
            .where(User.id == user_id)
            .where(User.upload_count + delta >= 0)
            .values(upload_count=User.upload_count + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return

        exists = db.execute(select(User.id).where(User.id == user_id)).scalar_one_or_none()
        if exists is None:
            raise NotFound("用户不存在。", resource="user", user_id=str(user_id))

        db.execute(
            update(User)
            .where(User.id == user_id)
            .values(upload_count=0)
            .execution_options(synchronize_session=False)
        )
        report_inconsistency("upload counter would go negative, clamped to 0", user_id=user_id, delta=delta)

    run_with_store_retry(db, _apply, action="user.increment_upload_count")
    _expire_cached_counter(db, user_id)


def remove_user(db: Session, user_id: UUID) -> None:
    """删除用户；仍拥有上传记录时拒绝删除，不做级联。"""
    user = get_user(db, user_id)

    def _owned_uploads() -> int:
        return db.execute(
            select(func.count(UploadRecord.id)).where(UploadRecord.owner_id == user_id)
        ).scalar_one()

    owned = run_with_store_retry(db, _owned_uploads, action="user.count_uploads")
    if owned:
        raise IdentityInUse(user_id=str(user_id), uploads=owned)

    def _delete() -> None:
        db.delete(user)
        db.flush()

    run_with_store_retry(db, _delete, action="user.remove")
    logger.info("user removed user_id=%s", user_id)
