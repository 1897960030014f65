import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from utp_api.core.config import get_settings
from utp_api.db.session import _engine_options, run_with_store_retry
from utp_api.exceptions import StoreUnavailable


def _flaky(failures: int):
    calls = {"count": 0}

    def _operation() -> str:
        calls["count"] += 1
        if calls["count"] <= failures:
            raise OperationalError("select 1", {}, Exception("connection reset"))
        return "ok"

    return _operation, calls


def test_transient_failure_is_retried_once(db_session: Session):
    operation, calls = _flaky(failures=1)

    assert run_with_store_retry(db_session, operation, action="test.flaky") == "ok"
    assert calls["count"] == 2


def test_persistent_failure_becomes_store_unavailable(db_session: Session):
    operation, calls = _flaky(failures=5)

    with pytest.raises(StoreUnavailable) as exc_info:
        run_with_store_retry(db_session, operation, action="test.down")

    assert exc_info.value.status_code == 503
    assert exc_info.value.details == {"action": "test.down", "attempts": 2}
    assert calls["count"] == 2


def test_retry_count_follows_settings(db_session: Session, monkeypatch):
    monkeypatch.setenv("UTP_STORE_RETRY_ATTEMPTS", "0")
    get_settings.cache_clear()
    operation, calls = _flaky(failures=1)

    with pytest.raises(StoreUnavailable):
        run_with_store_retry(db_session, operation, action="test.no_retry")

    assert calls["count"] == 1


def test_engine_options_bound_every_store_call():
    assert _engine_options("sqlite+pysqlite:///:memory:", 5) == {"connect_args": {"timeout": 5}}
    options = _engine_options("postgresql+psycopg://u:p@db/utp", 7)
    assert options["pool_timeout"] == 7
    assert options["connect_args"] == {"connect_timeout": 7}
    assert options["pool_pre_ping"] is True
