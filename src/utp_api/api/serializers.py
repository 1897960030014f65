"""ORM 对象到响应字典的转换。"""

from typing import Any

from utp_api.models.upload import UploadRecord
from utp_api.models.user import User
from utp_api.services.statistics import SystemStats, UserUploadStats


def user_data(user: User) -> dict[str, Any]:
    # 口令哈希永不出现在响应中。
    return {
        "id": user.id,
        "display_name": user.display_name,
        "email": user.email,
        "role": user.role,
        "status": user.status,
        "joined_at": user.joined_at,
        "upload_count": user.upload_count,
        "last_login_at": user.last_login_at,
    }


def upload_data(record: UploadRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "owner_id": record.owner_id,
        "file_name": record.file_name,
        "file_size_mb": float(record.file_size_mb),
        "uploaded_at": record.uploaded_at,
        "record_count": record.record_count,
        "storage_location": record.storage_location,
        "status": record.status,
    }


def user_stats_data(stats: UserUploadStats) -> dict[str, Any]:
    return {
        "total_uploads": stats.total_uploads,
        "total_records": stats.total_records,
        "total_size_mb": float(stats.total_size_mb),
        "last_upload_at": stats.last_upload_at,
    }


def system_stats_data(stats: SystemStats) -> dict[str, Any]:
    return {
        "total_users": stats.total_users,
        "active_users": stats.active_users,
        "pending_users": stats.pending_users,
        "total_uploads": stats.total_uploads,
        "total_records": stats.total_records,
        "total_storage_mb": float(stats.total_storage_mb),
    }
