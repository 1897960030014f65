"""用户身份模型。"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from utp_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utc_now
from utp_api.models.enums import UserRole, UserStatus


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """注册用户，同时承载本地口令凭据与上传计数。"""

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("upload_count >= 0", name="upload_count_non_negative"),)

    # 展示名。
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 登录邮箱，入库前统一小写，全局唯一。
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    # 口令哈希，不存明文。
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    # 角色（user/editor/admin）。
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=UserRole.USER)
    # 状态（active/inactive/suspended/pending）。
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=UserStatus.ACTIVE)
    # 注册时间，同时作为列表排序依据。
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    # 名下上传记录数量，随上传创建/删除原子增减。
    upload_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # 最近一次登录时间。
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
