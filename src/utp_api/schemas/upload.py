"""上传记录相关请求结构。"""

from pydantic import BaseModel, Field

from utp_api.models.enums import UploadStatus


class UploadStatusUpdateRequest(BaseModel):
    """上传状态迁移请求体。"""

    status: UploadStatus = Field(description="目标状态，仅允许 pending -> completed/failed。", examples=["completed"])
