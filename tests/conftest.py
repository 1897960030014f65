from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from utp_api.core.config import Settings, get_settings
from utp_api.core.security import issue_access_token
from utp_api.db.session import get_db, init_db
from utp_api.main import app
from utp_api.models.enums import UserRole, UserStatus
from utp_api.models.user import User
from utp_api.services.credentials import register_user

TEST_JWT_SECRET = "utp-test-secret-0123456789abcdef0123"
TEST_PASSWORD = "StrongPassw0rd!"


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path) -> Generator[Settings, None, None]:
    """每个用例使用独立的配置与存储目录。"""
    monkeypatch.setenv("UTP_AUTH_JWT_SECRET", TEST_JWT_SECRET)
    # 测试中降低哈希迭代次数，避免拖慢用例。
    monkeypatch.setenv("UTP_AUTH_PASSWORD_HASH_ITERATIONS", "1000")
    monkeypatch.setenv("UTP_STORAGE_ROOT", str(tmp_path / "storage"))
    monkeypatch.setenv("UTP_DATABASE_URL", "sqlite+pysqlite:///:memory:")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(session_factory: sessionmaker[Session]) -> Generator[TestClient, None, None]:
    def _override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as api_client:
        yield api_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: Session):
    """创建并提交用户。"""

    def _make(
        email: str,
        *,
        name: str = "Test User",
        password: str = TEST_PASSWORD,
        role: str = UserRole.USER,
        status: str = UserStatus.ACTIVE,
    ) -> User:
        user = register_user(
            db_session,
            display_name=name,
            email=email,
            password=password,
            role=role,
            status=status,
        )
        db_session.commit()
        return user

    return _make


@pytest.fixture
def auth_headers():
    """按用户签发令牌并构造认证头。"""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_access_token(user)}"}

    return _headers
