"""认证接口。"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from utp_api.api.serializers import user_data
from utp_api.core.config import get_settings
from utp_api.core.security import decode_access_token, issue_access_token
from utp_api.db.session import commit_or_unavailable, get_db
from utp_api.dependencies import RequestContext, get_request_context
from utp_api.exceptions import AccountDisabled, BadCredential, Forbidden, NotFound
from utp_api.models.enums import UserRole, UserStatus
from utp_api.schemas.auth import AuthLoginRequest, AuthRegisterRequest, AuthVerifyRequest
from utp_api.schemas.common import ErrorResponse, SuccessResponse
from utp_api.schemas.responses import AuthSessionData, ClaimsData, LogoutData, UserData
from utp_api.services.credentials import authenticate, get_user, register_user
from utp_api.utils.response import success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# 默认禁止登录的账号状态。
LOGIN_BLOCKED_STATUSES = frozenset({UserStatus.INACTIVE, UserStatus.SUSPENDED})


@router.post(
    "/register",
    summary="注册本地账号",
    description="创建普通用户账号并直接返回访问令牌。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[AuthSessionData],
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def register(
    payload: AuthRegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """注册本地账号。公开注册一律为普通用户角色。"""
    user = register_user(
        db,
        display_name=payload.name,
        email=payload.email,
        password=payload.password,
        role=UserRole.USER,
    )
    commit_or_unavailable(db, action="user.register")
    db.refresh(user)
    return success(
        request,
        {"access_token": issue_access_token(user), "token_type": "bearer", "user": user_data(user)},
    )


@router.post(
    "/login",
    summary="本地账号登录",
    description="使用邮箱密码登录，返回 Bearer 访问令牌。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthSessionData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def login(
    payload: AuthLoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """本地账号登录并签发访问令牌。"""
    try:
        user = authenticate(db, email=payload.email, password=payload.password)
    except NotFound as exc:
        # 对外不区分“用户不存在”和“密码错误”，避免邮箱枚举。
        raise BadCredential() from exc

    if get_settings().auth_reject_inactive_login and user.status in LOGIN_BLOCKED_STATUSES:
        db.rollback()
        raise AccountDisabled(status=str(user.status))

    if payload.user_type == UserRole.ADMIN and user.role != UserRole.ADMIN:
        db.rollback()
        raise Forbidden("当前账号不是管理员。")

    commit_or_unavailable(db, action="user.login")
    db.refresh(user)
    logger.info("user logged in user_id=%s role=%s", user.id, user.role)
    return success(
        request,
        {"access_token": issue_access_token(user), "token_type": "bearer", "user": user_data(user)},
    )


@router.post(
    "/verify",
    summary="校验访问令牌",
    description="校验令牌签名并返回其中的身份声明；不校验账号当前状态。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ClaimsData],
    responses={401: {"model": ErrorResponse}},
)
def verify(payload: AuthVerifyRequest, request: Request):
    """解码令牌并返回声明。"""
    claims = decode_access_token(payload.token)
    return success(
        request,
        {
            "user_id": claims.user_id,
            "email": claims.email,
            "role": claims.role,
            "issued_at": claims.issued_at,
        },
    )


@router.post(
    "/logout",
    summary="登出",
    description="令牌无服务端会话，登出由客户端丢弃令牌完成。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[LogoutData],
)
def logout(request: Request):
    return success(request, {"logged_out": True})


@router.get(
    "/me",
    summary="获取当前身份",
    description="返回当前令牌对应的用户资料。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserData],
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def me(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """查询当前登录用户资料。"""
    return success(request, user_data(get_user(db, ctx.user_id)))
