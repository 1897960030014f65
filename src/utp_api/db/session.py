"""数据库会话管理。"""

import logging
from collections.abc import Callable, Generator
from functools import lru_cache
from typing import Any, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from utp_api.core.config import get_settings
from utp_api.exceptions import StoreUnavailable
from utp_api.models.base import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 视为瞬时故障、允许重试的存储异常。
TRANSIENT_STORE_ERRORS = (OperationalError, DisconnectionError, PoolTimeoutError)


def _engine_options(database_url: str, timeout_seconds: int) -> dict[str, Any]:
    """按方言构造带超时的引擎参数，保证存储调用不会无限阻塞。"""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}
    return {
        "pool_pre_ping": True,
        "pool_timeout": timeout_seconds,
        "connect_args": {"connect_timeout": timeout_seconds},
    }


@lru_cache
def get_engine() -> Engine:
    """返回全局数据库引擎（首次调用时创建）。"""
    settings = get_settings()
    return create_engine(
        settings.database_url,
        future=True,
        **_engine_options(settings.database_url, settings.store_timeout_seconds),
    )


@lru_cache
def get_session_factory() -> sessionmaker[Session]:
    """统一会话工厂，路由层通过依赖注入获取短生命周期会话。"""
    return sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """为每个请求提供独立数据库会话。"""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def init_db(engine: Engine | None = None) -> None:
    """按模型定义建表，供本地开发与测试使用。"""
    import utp_api.models  # noqa: F401

    Base.metadata.create_all(engine or get_engine())


def run_with_store_retry(db: Session, operation: Callable[[], T], *, action: str) -> T:
    """执行一次存储操作，瞬时故障重试后仍失败则抛出 StoreUnavailable。

    operation 必须是可重放的完整单元：重试前会回滚会话中未提交的变更。
    """
    attempts = max(0, get_settings().store_retry_attempts) + 1
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except TRANSIENT_STORE_ERRORS as exc:
            db.rollback()
            if attempt >= attempts:
                logger.error("store unavailable action=%s attempts=%s error=%s", action, attempt, exc)
                raise StoreUnavailable(action=action, attempts=attempt) from exc
            logger.warning("store call failed, retrying action=%s attempt=%s error=%s", action, attempt, exc)
    raise StoreUnavailable(action=action)


def commit_or_unavailable(db: Session, *, action: str) -> None:
    """提交当前事务；提交不可重放，瞬时故障直接回滚并抛出 StoreUnavailable。"""
    try:
        db.commit()
    except TRANSIENT_STORE_ERRORS as exc:
        db.rollback()
        logger.error("commit failed action=%s error=%s", action, exc)
        raise StoreUnavailable(action=action) from exc
