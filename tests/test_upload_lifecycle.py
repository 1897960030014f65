from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from utp_api.exceptions import Forbidden, InconsistencyWarning, NotFound, OwnerNotFound, StoreUnavailable, ValidationError
from utp_api.models.enums import UploadStatus, UserRole
from utp_api.models.user import User
from utp_api.services import lifecycle
from utp_api.services.authorization import Actor
from utp_api.services.credentials import get_user
from utp_api.services.lifecycle import (
    change_upload_status,
    delete_upload,
    get_history,
    get_upload,
    list_all,
    submit_upload,
)
from utp_api.services.statistics import per_user_stats
from utp_api.services.uploads import FileDescriptor, get_upload_record, list_all_uploads

MB = 1024 * 1024


def _actor(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role)


def _descriptor(name: str = "sales.csv", size_bytes: int = MB, mime_type: str | None = "text/csv") -> FileDescriptor:
    return FileDescriptor(
        file_name=name,
        size_bytes=size_bytes,
        mime_type=mime_type,
        storage_location=f"uploads/{uuid4().hex}-{name}",
    )


def _fixed_estimate(count: int):
    return lambda _descriptor: count


def test_submit_creates_completed_record_and_increments_counter(db_session: Session, make_user):
    owner = make_user("owner@example.com")

    record = submit_upload(
        db_session,
        _actor(owner),
        _descriptor("report.xlsx", size_bytes=int(1.5 * MB), mime_type=None),
        estimator=_fixed_estimate(42),
    )

    assert record.owner_id == owner.id
    assert record.status == UploadStatus.COMPLETED
    assert record.file_size_mb == Decimal("1.50")
    assert record.record_count == 42
    assert get_user(db_session, owner.id).upload_count == 1


def test_submit_uses_default_estimator_range(db_session: Session, make_user):
    owner = make_user("owner@example.com")

    record = submit_upload(db_session, _actor(owner), _descriptor())

    assert 1 <= record.record_count <= 1000


@pytest.mark.parametrize(
    "descriptor",
    [
        _descriptor("data.exe", mime_type="application/octet-stream"),
        _descriptor("   ", mime_type="text/csv"),
        _descriptor("sales.csv", mime_type="image/png"),
        _descriptor("sales.csv", size_bytes=11 * MB),
    ],
)
def test_rejected_file_creates_nothing(db_session: Session, make_user, descriptor):
    owner = make_user("owner@example.com")

    with pytest.raises(ValidationError) as exc_info:
        submit_upload(db_session, _actor(owner), descriptor)

    assert exc_info.value.purge_location == descriptor.storage_location
    assert exc_info.value.status_code == 422
    assert list_all_uploads(db_session) == []
    assert get_user(db_session, owner.id).upload_count == 0


def test_submit_for_vanished_owner_is_owner_not_found(db_session: Session):
    ghost = Actor(user_id=uuid4(), role=UserRole.USER)

    with pytest.raises(OwnerNotFound):
        submit_upload(db_session, ghost, _descriptor())

    assert list_all_uploads(db_session) == []


def test_counter_failure_keeps_record_and_reports_inconsistency(db_session: Session, make_user, monkeypatch):
    owner = make_user("owner@example.com")

    def _broken_counter(*_args, **_kwargs):
        raise StoreUnavailable(action="user.increment_upload_count")

    monkeypatch.setattr(lifecycle, "increment_upload_count", _broken_counter)

    with pytest.warns(InconsistencyWarning):
        record = submit_upload(db_session, _actor(owner), _descriptor())

    assert get_upload_record(db_session, record.id).owner_id == owner.id
    assert get_user(db_session, owner.id).upload_count == 0


def test_user_cannot_delete_upload_owned_by_another(db_session: Session, make_user):
    u1 = make_user("u1@example.com")
    u2 = make_user("u2@example.com")
    record = submit_upload(db_session, _actor(u2), _descriptor())

    with pytest.raises(Forbidden):
        delete_upload(db_session, _actor(u1), record.id)

    assert get_upload_record(db_session, record.id).id == record.id


def test_delete_decrements_counter_and_stats(db_session: Session, make_user):
    owner = make_user("owner@example.com")
    first = submit_upload(db_session, _actor(owner), _descriptor("a.csv"), estimator=_fixed_estimate(10))
    submit_upload(db_session, _actor(owner), _descriptor("b.csv"), estimator=_fixed_estimate(20))
    before = per_user_stats(db_session, owner.id)

    released: list[str] = []
    delete_upload(
        db_session,
        _actor(owner),
        first.id,
        release=lambda location: released.append(location) or True,
    )

    after = per_user_stats(db_session, owner.id)
    assert after.total_uploads == before.total_uploads - 1
    assert after.total_records == 20
    assert get_user(db_session, owner.id).upload_count == 1
    assert len(released) == 1


def test_second_delete_is_not_found(db_session: Session, make_user):
    owner = make_user("owner@example.com")
    record = submit_upload(db_session, _actor(owner), _descriptor())
    delete_upload(db_session, _actor(owner), record.id, release=lambda _location: False)

    with pytest.raises(NotFound):
        delete_upload(db_session, _actor(owner), record.id, release=lambda _location: False)

    assert get_user(db_session, owner.id).upload_count == 0


def test_racing_deletes_succeed_once(db_session: Session, session_factory, make_user):
    owner = make_user("owner@example.com")
    first = submit_upload(db_session, _actor(owner), _descriptor("a.csv"))
    submit_upload(db_session, _actor(owner), _descriptor("b.csv"))

    other_session = session_factory()
    try:
        # 另一个会话先加载记录，随后记录被删除。
        get_upload_record(other_session, first.id)
        delete_upload(db_session, _actor(owner), first.id, release=lambda _location: True)

        with pytest.raises(NotFound):
            delete_upload(other_session, _actor(owner), first.id, release=lambda _location: True)
    finally:
        other_session.close()

    with session_factory() as fresh:
        assert get_user(fresh, owner.id).upload_count == 1
        assert per_user_stats(fresh, owner.id).total_uploads == 1


def test_admin_delete_survives_storage_release_failure(db_session: Session, make_user):
    owner = make_user("owner@example.com")
    admin = make_user("admin@example.com", role=UserRole.ADMIN)
    record = submit_upload(db_session, _actor(owner), _descriptor())

    def _failing_release(_location: str) -> bool:
        raise OSError("disk unavailable")

    delete_upload(db_session, _actor(admin), record.id, release=_failing_release)

    with pytest.raises(NotFound):
        get_upload_record(db_session, record.id)
    assert get_user(db_session, owner.id).upload_count == 0


def test_history_is_newest_first_and_owner_scoped(db_session: Session, make_user):
    owner = make_user("owner@example.com")
    other = make_user("other@example.com")
    admin = make_user("admin@example.com", role=UserRole.ADMIN)
    older = submit_upload(db_session, _actor(owner), _descriptor("old.csv"))
    newer = submit_upload(db_session, _actor(owner), _descriptor("new.csv"))
    submit_upload(db_session, _actor(other), _descriptor("theirs.csv"))

    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    get_upload_record(db_session, older.id).uploaded_at = base
    get_upload_record(db_session, newer.id).uploaded_at = base + timedelta(hours=1)
    db_session.commit()

    history = get_history(db_session, _actor(owner), owner.id)
    assert [record.id for record in history] == [newer.id, older.id]
    assert [record.id for record in get_history(db_session, _actor(admin), owner.id)] == [newer.id, older.id]

    with pytest.raises(Forbidden):
        get_history(db_session, _actor(other), owner.id)


def test_single_record_read_and_admin_listing(db_session: Session, make_user):
    owner = make_user("owner@example.com")
    other = make_user("other@example.com")
    admin = make_user("admin@example.com", role=UserRole.ADMIN)
    record = submit_upload(db_session, _actor(owner), _descriptor())

    assert get_upload(db_session, _actor(owner), record.id).id == record.id
    assert get_upload(db_session, _actor(admin), record.id).id == record.id
    with pytest.raises(Forbidden):
        get_upload(db_session, _actor(other), record.id)

    assert len(list_all(db_session, _actor(admin))) == 1
    with pytest.raises(Forbidden):
        list_all(db_session, _actor(owner))


def test_status_transitions_follow_state_machine(db_session: Session, make_user):
    owner = make_user("owner@example.com")
    admin = make_user("admin@example.com", role=UserRole.ADMIN)
    record = submit_upload(db_session, _actor(owner), _descriptor())
    get_upload_record(db_session, record.id).status = UploadStatus.PENDING
    db_session.commit()

    with pytest.raises(Forbidden):
        change_upload_status(db_session, _actor(owner), record.id, UploadStatus.COMPLETED)

    updated = change_upload_status(db_session, _actor(admin), record.id, UploadStatus.FAILED)
    assert updated.status == UploadStatus.FAILED

    with pytest.raises(ValidationError):
        change_upload_status(db_session, _actor(admin), record.id, UploadStatus.PENDING)
    with pytest.raises(ValidationError):
        change_upload_status(db_session, _actor(admin), record.id, "archived")
