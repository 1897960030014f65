from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from utp_api.models.enums import UserStatus
from utp_api.services.statistics import per_user_stats, system_stats
from utp_api.services.uploads import UploadDescriptor, create_upload_record, get_upload_record


def _add_upload(db: Session, owner_id, *, size_mb: str, records: int):
    return create_upload_record(
        db,
        owner_id,
        UploadDescriptor(
            file_name="sheet.csv",
            file_size_mb=Decimal(size_mb),
            record_count=records,
            storage_location="uploads/sheet.csv",
        ),
    )


def test_system_stats_aggregates_users_and_uploads(db_session: Session, make_user):
    alice = make_user("alice@example.com")
    bob = make_user("bob@example.com")
    make_user("carol@example.com", status=UserStatus.PENDING)
    for size_mb, records in [("2.50", 68), ("2.50", 68), ("2.50", 68)]:
        _add_upload(db_session, alice.id, size_mb=size_mb, records=records)
    for size_mb, records in [("2.50", 68), ("2.50", 68)]:
        _add_upload(db_session, bob.id, size_mb=size_mb, records=records)
    db_session.commit()

    stats = system_stats(db_session)

    assert stats.total_users == 3
    assert stats.active_users == 2
    assert stats.pending_users == 1
    assert stats.total_uploads == 5
    assert stats.total_records == 340
    assert stats.total_storage_mb == Decimal("12.50")


def test_system_stats_on_empty_store(db_session: Session):
    stats = system_stats(db_session)

    assert stats.total_users == 0
    assert stats.total_uploads == 0
    assert stats.total_records == 0
    assert stats.total_storage_mb == Decimal("0.00")


def test_per_user_stats_uses_latest_upload_time(db_session: Session, make_user):
    owner = make_user("owner@example.com")
    latest = _add_upload(db_session, owner.id, size_mb="1.25", records=10)
    earlier = _add_upload(db_session, owner.id, size_mb="0.75", records=5)
    db_session.flush()
    latest.uploaded_at = datetime(2026, 5, 2, 12, 0, tzinfo=timezone.utc)
    earlier.uploaded_at = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    db_session.commit()

    stats = per_user_stats(db_session, owner.id)

    assert stats.total_uploads == 2
    assert stats.total_records == 15
    assert stats.total_size_mb == Decimal("2.00")
    assert stats.last_upload_at == get_upload_record(db_session, latest.id).uploaded_at


def test_per_user_stats_without_uploads(db_session: Session, make_user):
    owner = make_user("owner@example.com")

    stats = per_user_stats(db_session, owner.id)

    assert stats.total_uploads == 0
    assert stats.total_records == 0
    assert stats.total_size_mb == Decimal("0.00")
    assert stats.last_upload_at is None
