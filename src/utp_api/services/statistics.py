"""上传统计汇总。

统计均为只读聚合，每次调用实时计算，不做缓存。
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from utp_api.db.session import run_with_store_retry
from utp_api.models.enums import UserStatus
from utp_api.models.upload import UploadRecord
from utp_api.models.user import User
from utp_api.services.uploads import round_size_mb


@dataclass(frozen=True)
class UserUploadStats:
    """单个用户的上传汇总。"""

    total_uploads: int
    total_records: int
    total_size_mb: Decimal
    # 最大上传时间；无上传记录时为空。
    last_upload_at: datetime | None


@dataclass(frozen=True)
class SystemStats:
    """全系统用户与上传汇总。"""

    total_users: int
    active_users: int
    pending_users: int
    total_uploads: int
    total_records: int
    total_storage_mb: Decimal


def per_user_stats(db: Session, owner_id: UUID) -> UserUploadStats:
    """汇总某用户的上传数量、记录条数、总大小与最近上传时间。"""

    def _aggregate():
        return db.execute(
            select(
                func.count(UploadRecord.id),
                func.coalesce(func.sum(UploadRecord.record_count), 0),
                func.coalesce(func.sum(UploadRecord.file_size_mb), 0),
                # 按时间比较取最大值，而不是取列表中最后一条。
                func.max(UploadRecord.uploaded_at),
            ).where(UploadRecord.owner_id == owner_id)
        ).one()

    total_uploads, total_records, total_size, last_upload_at = run_with_store_retry(
        db, _aggregate, action="stats.per_user"
    )
    return UserUploadStats(
        total_uploads=int(total_uploads),
        total_records=int(total_records),
        total_size_mb=round_size_mb(total_size),
        last_upload_at=last_upload_at,
    )


def system_stats(db: Session) -> SystemStats:
    """汇总全系统统计（调用方负责管理员授权）。"""

    def _aggregate():
        user_row = db.execute(
            select(
                func.count(User.id),
                func.count(User.id).filter(User.status == UserStatus.ACTIVE),
                func.count(User.id).filter(User.status == UserStatus.PENDING),
            )
        ).one()
        upload_row = db.execute(
            select(
                func.count(UploadRecord.id),
                func.coalesce(func.sum(UploadRecord.record_count), 0),
                func.coalesce(func.sum(UploadRecord.file_size_mb), 0),
            )
        ).one()
        return user_row, upload_row

    (total_users, active_users, pending_users), (total_uploads, total_records, total_size) = run_with_store_retry(
        db, _aggregate, action="stats.system"
    )
    return SystemStats(
        total_users=int(total_users),
        active_users=int(active_users),
        pending_users=int(pending_users),
        total_uploads=int(total_uploads),
        total_records=int(total_records),
        total_storage_mb=round_size_mb(total_size),
    )
