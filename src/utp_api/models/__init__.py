"""ORM 模型导出集合。"""

from utp_api.models.upload import UploadRecord
from utp_api.models.user import User

__all__ = [
    "UploadRecord",
    "User",
]
