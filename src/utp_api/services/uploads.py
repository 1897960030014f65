"""上传记录存储。"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from utp_api.db.session import run_with_store_retry
from utp_api.exceptions import NotFound, OwnerNotFound, ValidationError
from utp_api.models.enums import UPLOAD_STATUS_TRANSITIONS, UploadStatus
from utp_api.models.upload import UploadRecord
from utp_api.models.user import User

TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class FileDescriptor:
    """传输层交接给核心的已落盘文件描述。"""

    file_name: str
    size_bytes: int
    mime_type: str | None
    # 已落盘文件的对象键。
    storage_location: str


@dataclass(frozen=True)
class UploadDescriptor:
    """写入上传记录所需的元数据。"""

    file_name: str
    file_size_mb: Decimal
    record_count: int
    storage_location: str


def round_size_mb(value: Decimal | float | int) -> Decimal:
    """文件大小统一保留两位小数。"""
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def create_upload_record(db: Session, owner_id: UUID, descriptor: UploadDescriptor) -> UploadRecord:
    """为指定用户创建上传记录，初始状态为 completed。"""

    def _create() -> UploadRecord:
        if db.get(User, owner_id) is None:
            raise OwnerNotFound(owner_id=str(owner_id))
        record = UploadRecord(
            id=uuid4(),
            owner_id=owner_id,
            file_name=descriptor.file_name,
            file_size_mb=round_size_mb(descriptor.file_size_mb),
            uploaded_at=datetime.now(timezone.utc),
            record_count=descriptor.record_count,
            storage_location=descriptor.storage_location,
            status=UploadStatus.COMPLETED,
        )
        db.add(record)
        db.flush()
        return record

    return run_with_store_retry(db, _create, action="upload.create")


def get_upload_record(db: Session, upload_id: UUID) -> UploadRecord:
    """按 ID 查询上传记录。"""
    record = run_with_store_retry(db, lambda: db.get(UploadRecord, upload_id), action="upload.get")
    if record is None:
        raise NotFound("上传记录不存在。", resource="upload", upload_id=str(upload_id))
    return record


def list_uploads_by_owner(db: Session, owner_id: UUID) -> list[UploadRecord]:
    """按上传时间倒序列出某用户的上传记录。"""

    def _list() -> list[UploadRecord]:
        stmt = (
            select(UploadRecord)
            .where(UploadRecord.owner_id == owner_id)
            .order_by(UploadRecord.uploaded_at.desc(), UploadRecord.id)
        )
        return list(db.execute(stmt).scalars().all())

    return run_with_store_retry(db, _list, action="upload.list_by_owner")


def list_all_uploads(db: Session) -> list[UploadRecord]:
    """按上传时间倒序列出全部上传记录（调用方负责管理员授权）。"""

    def _list() -> list[UploadRecord]:
        stmt = select(UploadRecord).order_by(UploadRecord.uploaded_at.desc(), UploadRecord.id)
        return list(db.execute(stmt).scalars().all())

    return run_with_store_retry(db, _list, action="upload.list_all")


def delete_upload_record(db: Session, upload_id: UUID) -> UploadRecord:
    """删除上传记录并返回被删除的记录，供调用方释放存储与回退计数。

    按删除语句的实际影响行数判定，记录已被并发请求删除时抛出 NotFound。
    """
    record = get_upload_record(db, upload_id)

    def _delete() -> int:
        result = db.execute(delete(UploadRecord).where(UploadRecord.id == upload_id))
        return result.rowcount

    if not run_with_store_retry(db, _delete, action="upload.delete"):
        raise NotFound("上传记录不存在。", resource="upload", upload_id=str(upload_id))
    return record


def transition_upload_status(db: Session, upload_id: UUID, status: str) -> UploadRecord:
    """按状态机迁移上传状态，仅允许 pending -> completed/failed。"""
    try:
        target = UploadStatus(status)
    except ValueError as exc:
        raise ValidationError("未知的上传状态。", field="status", value=str(status)) from exc

    record = get_upload_record(db, upload_id)
    if target == record.status:
        return record
    if target not in UPLOAD_STATUS_TRANSITIONS.get(record.status, frozenset()):
        raise ValidationError(
            "不允许的上传状态迁移。",
            field="status",
            current=str(record.status),
            target=str(target),
        )

    record.status = target
    run_with_store_retry(db, db.flush, action="upload.transition_status")
    return record
