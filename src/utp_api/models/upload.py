"""上传记录模型。"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from utp_api.models.base import Base, UUIDPrimaryKeyMixin, utc_now
from utp_api.models.enums import UploadStatus


class UploadRecord(Base, UUIDPrimaryKeyMixin):
    """单次上传的文件元数据。"""

    __tablename__ = "uploads"
    __table_args__ = (
        CheckConstraint("file_size_mb >= 0", name="file_size_non_negative"),
        CheckConstraint("record_count >= 0", name="record_count_non_negative"),
    )

    # 归属用户 ID（逻辑关联 users.id，不声明数据库外键，删除用户不级联）。
    owner_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 原始文件名。
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # 文件大小（MB，保留两位小数）。
    file_size_mb: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # 上传时间。
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    # 记录条数（当前为估算值）。
    record_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # 存储位置（对象键）。
    storage_location: Mapped[str] = mapped_column(String(512), nullable=False)
    # 处理状态（pending/completed/failed）。
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=UploadStatus.COMPLETED)
