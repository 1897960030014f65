"""健康检查接口。"""

from pathlib import Path

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from utp_api.core.config import get_settings
from utp_api.db.session import get_db, run_with_store_retry
from utp_api.exceptions import StoreUnavailable
from utp_api.schemas.common import ErrorResponse, SuccessResponse
from utp_api.schemas.responses import HealthStatusData
from utp_api.utils.response import success

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "/live",
    summary="存活探针",
    description="进程可响应即视为存活，不访问任何外部依赖。",
    response_model=SuccessResponse[HealthStatusData],
)
def live(request: Request):
    return success(request, {"status": "ok"})


@router.get(
    "/ready",
    summary="就绪探针",
    description="数据库可执行查询且上传存储目录可用时返回 ready。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={503: {"model": ErrorResponse}},
)
def ready(request: Request, db: Session = Depends(get_db)):
    """依次检查数据库与存储目录，任一不可用返回 503。"""
    run_with_store_retry(db, lambda: db.execute(text("select 1")), action="health.ready")

    storage_root = Path(get_settings().storage_root)
    try:
        storage_root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StoreUnavailable("上传存储目录不可用。", action="health.storage_root") from exc
    return success(request, {"status": "ready"})
