"""上传记录接口。

传输层负责接收字节并落盘，核心生命周期只处理文件描述与元数据。
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Path, Request, UploadFile, status
from sqlalchemy.orm import Session

from utp_api.api.serializers import system_stats_data, upload_data
from utp_api.core.config import get_settings
from utp_api.db.session import get_db
from utp_api.dependencies import RequestContext, get_request_context, require_admin
from utp_api.exceptions import ValidationError
from utp_api.schemas.common import ErrorResponse, StatsResponse, SuccessResponse
from utp_api.schemas.responses import DeletedData, SystemStatsData, UploadData
from utp_api.schemas.upload import UploadStatusUpdateRequest
from utp_api.services.lifecycle import (
    ALLOWED_MIME_TYPES,
    change_upload_status,
    delete_upload,
    get_history,
    get_upload,
    list_all,
    submit_upload,
)
from utp_api.services.statistics import system_stats
from utp_api.services.storage import file_extension, persist_upload, purge_rejected_file
from utp_api.services.uploads import FileDescriptor
from utp_api.utils.response import success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post(
    "/upload",
    summary="上传表格文件",
    description="上传 csv/xlsx/xls 文件并创建上传记录，属主取自当前令牌。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[UploadData],
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def upload_file(
    request: Request,
    file: UploadFile = File(..., description="待上传表格文件。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """接收上传文件。

    处理流程：
    1. 传输层预校验后缀、MIME 与大小，未通过时不落盘。
    2. 文件落盘后交由生命周期校验并创建记录。
    3. 落盘之后任何失败都清理已落盘文件。
    """
    settings = get_settings()
    filename = (file.filename or "").strip()
    if not filename:
        raise ValidationError("上传文件缺少文件名。", field="file")
    extension = file_extension(filename)
    if extension not in settings.allowed_extensions:
        raise ValidationError(
            "不支持的文件类型。",
            extension=extension,
            allowed=sorted(settings.allowed_extensions),
        )

    mime_type = (file.content_type or "").split(";")[0].strip().lower()
    if mime_type and mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationError("文件类型不受支持。", mime_type=mime_type)

    # 多读一个字节即可判断是否超限，无需读入整个超大文件。
    content = await file.read(settings.upload_max_bytes + 1)
    if len(content) > settings.upload_max_bytes:
        raise ValidationError("上传文件超过大小上限。", max_bytes=settings.upload_max_bytes)

    storage_location = persist_upload(filename, content)
    descriptor = FileDescriptor(
        file_name=filename,
        size_bytes=len(content),
        mime_type=file.content_type,
        storage_location=storage_location,
    )
    try:
        record = submit_upload(db, ctx.actor, descriptor)
    except Exception as exc:
        # 字节已落盘，任何失败都要清理，校验失败时优先使用异常携带的位置。
        purge_rejected_file(getattr(exc, "purge_location", None) or storage_location)
        raise
    return success(request, upload_data(record))


@router.get(
    "/history/{user_id}",
    summary="查询用户上传历史",
    description="本人或管理员可查询，按上传时间倒序。",
    response_model=SuccessResponse[list[UploadData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def upload_history(
    request: Request,
    user_id: UUID = Path(..., description="属主用户 ID。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    records = get_history(db, ctx.actor, user_id)
    return success(request, [upload_data(record) for record in records], meta={"total": len(records)})


@router.get(
    "",
    summary="查询全部上传记录",
    description="管理员查询全部上传记录，按上传时间倒序。",
    response_model=SuccessResponse[list[UploadData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_uploads(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    records = list_all(db, ctx.actor)
    return success(request, [upload_data(record) for record in records], meta={"total": len(records)})


@router.get(
    "/stats/system",
    summary="查询系统统计",
    description="管理员查询用户与上传的全局统计。",
    response_model=StatsResponse[SystemStatsData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def get_system_stats(
    request: Request,
    _: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success(request, system_stats_data(system_stats(db)), key="stats")


@router.get(
    "/{upload_id}",
    summary="查询上传记录",
    description="本人或管理员可查询单条上传记录。",
    response_model=SuccessResponse[UploadData],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_upload_detail(
    request: Request,
    upload_id: UUID = Path(..., description="上传记录 ID。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return success(request, upload_data(get_upload(db, ctx.actor, upload_id)))


@router.delete(
    "/{upload_id}",
    summary="删除上传记录",
    description="属主或管理员可删除；删除后属主计数减一并尽力释放存储文件。",
    response_model=SuccessResponse[DeletedData],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def remove_upload(
    request: Request,
    upload_id: UUID = Path(..., description="上传记录 ID。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    delete_upload(db, ctx.actor, upload_id)
    return success(request, {"id": upload_id, "deleted": True})


@router.patch(
    "/{upload_id}/status",
    summary="迁移上传状态",
    description="管理员将 pending 记录迁移为 completed 或 failed。",
    response_model=SuccessResponse[UploadData],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def update_upload_status(
    payload: UploadStatusUpdateRequest,
    request: Request,
    upload_id: UUID = Path(..., description="上传记录 ID。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    record = change_upload_status(db, ctx.actor, upload_id, payload.status)
    logger.info("upload status changed upload_id=%s status=%s by=%s", upload_id, record.status, ctx.user_id)
    return success(request, upload_data(record))
