"""用户管理接口。"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from utp_api.api.serializers import user_data, user_stats_data
from utp_api.db.session import commit_or_unavailable, get_db
from utp_api.dependencies import RequestContext, get_request_context, require_admin
from utp_api.schemas.common import ErrorResponse, StatsResponse, SuccessResponse
from utp_api.schemas.responses import DeletedData, UserData, UserStatsData
from utp_api.schemas.user import UserCreateRequest, UserUpdateRequest
from utp_api.services.authorization import Action, ensure_allowed, is_allowed
from utp_api.services.credentials import get_user, list_users, register_user, remove_user, update_profile
from utp_api.services.statistics import per_user_stats
from utp_api.utils.response import success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _read_action(ctx: RequestContext, user_id: UUID) -> Action:
    return Action.READ_OWN if ctx.user_id == user_id else Action.READ_ANY


@router.get(
    "",
    summary="查询用户列表",
    description="管理员查询全部用户，按注册时间升序。",
    response_model=SuccessResponse[list[UserData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_all_users(
    request: Request,
    _: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users = list_users(db)
    return success(request, [user_data(user) for user in users], meta={"total": len(users)})


@router.post(
    "",
    summary="创建用户",
    description="管理员直接创建账号，可指定角色与状态。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[UserData],
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def create_user(
    payload: UserCreateRequest,
    request: Request,
    ctx: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """管理员创建用户。"""
    user = register_user(
        db,
        display_name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        status=payload.status,
    )
    commit_or_unavailable(db, action="user.create")
    db.refresh(user)
    logger.info("user created user_id=%s role=%s by=%s", user.id, user.role, ctx.user_id)
    return success(request, user_data(user))


@router.get(
    "/{user_id}",
    summary="查询用户资料",
    description="本人或管理员可查询。",
    response_model=SuccessResponse[UserData],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_user_profile(
    user_id: UUID,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    ensure_allowed(ctx.actor, _read_action(ctx, user_id), user_id)
    return success(request, user_data(get_user(db, user_id)))


@router.put(
    "/{user_id}",
    summary="更新用户资料",
    description="本人可修改展示名；角色与状态仅管理员修改生效，非管理员提交时忽略。",
    response_model=SuccessResponse[UserData],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def update_user_profile(
    user_id: UUID,
    payload: UserUpdateRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """更新用户资料。"""
    ensure_allowed(ctx.actor, Action.WRITE_OWN, user_id)
    privileged = is_allowed(ctx.actor, Action.ADMIN_ONLY)
    user = update_profile(
        db,
        user_id,
        display_name=payload.name,
        role=payload.role if privileged else None,
        status=payload.status if privileged else None,
    )
    commit_or_unavailable(db, action="user.update")
    db.refresh(user)
    return success(request, user_data(user))


@router.delete(
    "/{user_id}",
    summary="删除用户",
    description="管理员删除用户；名下仍有上传记录时拒绝删除。",
    response_model=SuccessResponse[DeletedData],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def delete_user(
    user_id: UUID,
    request: Request,
    ctx: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    remove_user(db, user_id)
    commit_or_unavailable(db, action="user.delete")
    logger.info("user deleted user_id=%s by=%s", user_id, ctx.user_id)
    return success(request, {"id": user_id, "deleted": True})


@router.get(
    "/{user_id}/stats",
    summary="查询用户上传统计",
    description="返回某用户的上传次数、记录条数、文件大小合计与最近上传时间。",
    response_model=StatsResponse[UserStatsData],
    responses={403: {"model": ErrorResponse}},
)
def get_user_stats(
    user_id: UUID,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    ensure_allowed(ctx.actor, _read_action(ctx, user_id), user_id)
    return success(request, user_stats_data(per_user_stats(db, user_id)), key="stats")
