"""FastAPI 应用入口点。"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from utp_api.api.router import api_router
from utp_api.core.config import get_settings
from utp_api.db.session import init_db
from utp_api.exceptions import register_exception_handlers
from utp_api.logging_config import setup_logging
from utp_api.middlewares import register_middlewares

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.db_create_tables_on_startup:
        init_db()
        logger.info("database tables ensured env=%s", settings.app_env)
    yield


def create_app() -> FastAPI:
    """创建并配置 FastAPI 应用实例。"""
    settings = get_settings()
    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        lifespan=lifespan,
        description=(
            "上传记录追踪平台接口。\n\n"
            "成功响应统一返回：`{success, request_id, data, meta}`，统计接口数据位于 `stats`。\n"
            "失败响应统一返回：`{success: false, request_id, error, code, details}`。\n"
            "通过 Bearer 访问令牌进行认证。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "auth", "description": "注册、登录与令牌校验。"},
            {"name": "users", "description": "用户资料查询与管理。"},
            {"name": "uploads", "description": "文件上传、上传历史与统计。"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
