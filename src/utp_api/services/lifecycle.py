"""上传记录生命周期编排。

主流程:
1) 校验传输层交接的文件描述（后缀白名单 + 大小上限），失败时不写任何存储
2) 创建上传记录并提交
3) 在独立事务中递增属主上传计数，失败只上报不一致，不回滚已创建记录

删除流程先删除记录并回退计数，再尽力释放存储文件；
文件释放失败只记录日志，不阻塞逻辑删除。
"""

import logging
from collections.abc import Callable
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from utp_api.core.config import get_settings
from utp_api.db.session import commit_or_unavailable
from utp_api.exceptions import NotFound, StoreUnavailable, ValidationError, report_inconsistency
from utp_api.models.upload import UploadRecord
from utp_api.services.authorization import Action, Actor, ensure_allowed
from utp_api.services.credentials import increment_upload_count
from utp_api.services.estimation import estimate_record_count
from utp_api.services.storage import file_extension, release_stored_file
from utp_api.services.uploads import (
    FileDescriptor,
    UploadDescriptor,
    create_upload_record,
    delete_upload_record,
    get_upload_record,
    list_all_uploads,
    list_uploads_by_owner,
    round_size_mb,
    transition_upload_status,
)

logger = logging.getLogger(__name__)

BYTES_PER_MB = Decimal(1024 * 1024)

# 表格文件常见 MIME；部分浏览器对 Excel 只给出 octet-stream。
ALLOWED_MIME_TYPES = frozenset(
    {
        "text/csv",
        "application/csv",
        "text/plain",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/octet-stream",
    }
)

# 计数维护中允许降级处理的异常。
_COUNTER_ERRORS = (NotFound, StoreUnavailable, SQLAlchemyError)


def validate_file_descriptor(descriptor: FileDescriptor) -> None:
    """校验文件描述，失败时在异常中携带待清理的存储位置。"""
    settings = get_settings()
    purge_location = descriptor.storage_location

    if not descriptor.file_name or not descriptor.file_name.strip():
        raise ValidationError("文件名不能为空。", purge_location=purge_location, field="file_name")

    extension = file_extension(descriptor.file_name)
    if extension not in settings.allowed_extensions:
        raise ValidationError(
            "仅支持 CSV 与 Excel 文件。",
            purge_location=purge_location,
            field="file_name",
            extension=extension,
            allowed=sorted(settings.allowed_extensions),
        )

    if descriptor.mime_type:
        mime_type = descriptor.mime_type.split(";")[0].strip().lower()
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                "文件类型不受支持。",
                purge_location=purge_location,
                field="mime_type",
                mime_type=mime_type,
            )

    if descriptor.size_bytes < 0:
        raise ValidationError("文件大小不合法。", purge_location=purge_location, field="size_bytes")
    if descriptor.size_bytes > settings.upload_max_bytes:
        raise ValidationError(
            "文件超过大小上限。",
            purge_location=purge_location,
            field="size_bytes",
            size_bytes=descriptor.size_bytes,
            max_bytes=settings.upload_max_bytes,
        )


def _adjust_owner_counter(db: Session, owner_id: UUID, delta: int, *, action: str) -> None:
    """在独立事务中调整属主计数，失败时回滚并上报不一致。"""
    try:
        increment_upload_count(db, owner_id, delta)
        commit_or_unavailable(db, action=action)
    except _COUNTER_ERRORS as exc:
        db.rollback()
        report_inconsistency(
            "upload counter update failed",
            owner_id=owner_id,
            delta=delta,
            error=type(exc).__name__,
        )


def submit_upload(
    db: Session,
    actor: Actor,
    descriptor: FileDescriptor,
    *,
    estimator: Callable[[FileDescriptor], int] = estimate_record_count,
) -> UploadRecord:
    """接收一次上传：校验、落记录、递增属主计数。

    属主永远取自已解码的身份，不接受客户端传入的 owner id。
    """
    validate_file_descriptor(descriptor)

    upload_descriptor = UploadDescriptor(
        file_name=descriptor.file_name.strip(),
        file_size_mb=round_size_mb(Decimal(descriptor.size_bytes) / BYTES_PER_MB),
        record_count=max(0, int(estimator(descriptor))),
        storage_location=descriptor.storage_location,
    )
    record = create_upload_record(db, actor.user_id, upload_descriptor)
    record_id = record.id
    commit_or_unavailable(db, action="upload.create")
    logger.info(
        "upload created upload_id=%s owner_id=%s size_mb=%s",
        record_id,
        actor.user_id,
        upload_descriptor.file_size_mb,
    )

    _adjust_owner_counter(db, actor.user_id, +1, action="upload.count_increment")
    return get_upload_record(db, record_id)


def delete_upload(
    db: Session,
    actor: Actor,
    upload_id: UUID,
    *,
    release: Callable[[str], bool] = release_stored_file,
) -> None:
    """删除上传记录、回退属主计数并释放存储文件。"""
    record = get_upload_record(db, upload_id)
    ensure_allowed(actor, Action.DELETE_ANY, record.owner_id)

    owner_id = record.owner_id
    storage_location = record.storage_location
    delete_upload_record(db, upload_id)
    commit_or_unavailable(db, action="upload.delete")
    logger.info("upload deleted upload_id=%s owner_id=%s by=%s", upload_id, owner_id, actor.user_id)

    _adjust_owner_counter(db, owner_id, -1, action="upload.count_decrement")

    try:
        released = release(storage_location)
    except (OSError, ValueError):
        logger.exception("failed to release stored file upload_id=%s location=%s", upload_id, storage_location)
        return
    if not released:
        logger.info("stored file already absent upload_id=%s location=%s", upload_id, storage_location)


def get_history(db: Session, actor: Actor, owner_id: UUID) -> list[UploadRecord]:
    """查询某用户的上传历史（本人或管理员）。"""
    action = Action.READ_OWN if actor.user_id == owner_id else Action.READ_ANY
    ensure_allowed(actor, action, owner_id)
    return list_uploads_by_owner(db, owner_id)


def get_upload(db: Session, actor: Actor, upload_id: UUID) -> UploadRecord:
    """查询单条上传记录（本人或管理员）。"""
    record = get_upload_record(db, upload_id)
    ensure_allowed(actor, Action.READ_OWN, record.owner_id)
    return record


def list_all(db: Session, actor: Actor) -> list[UploadRecord]:
    """查询全部上传记录（仅管理员）。"""
    ensure_allowed(actor, Action.READ_ANY)
    return list_all_uploads(db)


def change_upload_status(db: Session, actor: Actor, upload_id: UUID, status: str) -> UploadRecord:
    """迁移上传记录状态（仅管理员）。"""
    ensure_allowed(actor, Action.ADMIN_ONLY)
    record = transition_upload_status(db, upload_id, status)
    commit_or_unavailable(db, action="upload.transition_status")
    return record
