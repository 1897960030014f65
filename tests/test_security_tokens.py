from datetime import datetime, timezone
from uuid import uuid4

import jwt
import pytest

from utp_api.core.config import get_settings
from utp_api.core.security import decode_access_token, issue_access_token, parse_authorization_header
from utp_api.exceptions import InvalidToken
from utp_api.models.enums import UserRole
from utp_api.models.user import User


def _transient_user(role: str = UserRole.USER) -> User:
    return User(id=uuid4(), email="alice@example.com", display_name="Alice", role=role)


def test_issued_token_round_trips_claims():
    user = _transient_user(UserRole.ADMIN)
    issued_at = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)

    claims = decode_access_token(issue_access_token(user, now=issued_at))

    assert claims.user_id == user.id
    assert claims.email == "alice@example.com"
    assert claims.role == UserRole.ADMIN
    assert claims.issued_at == issued_at
    assert "exp" not in claims.raw


def test_token_signed_with_other_secret_is_rejected(monkeypatch):
    token = issue_access_token(_transient_user())

    monkeypatch.setenv("UTP_AUTH_JWT_SECRET", "another-secret-which-is-long-enough-000")
    get_settings.cache_clear()

    with pytest.raises(InvalidToken):
        decode_access_token(token)


def test_tampered_token_is_rejected():
    token = issue_access_token(_transient_user())
    header, payload, signature = token.split(".")
    tampered = f"{header}.{payload}.{signature[::-1]}"

    with pytest.raises(InvalidToken):
        decode_access_token(tampered)


def test_token_with_unknown_role_is_rejected(test_settings):
    token = jwt.encode(
        {"sub": str(uuid4()), "email": "x@example.com", "role": "root", "iat": 1_700_000_000},
        test_settings.auth_jwt_secret,
        algorithm="HS256",
    )

    with pytest.raises(InvalidToken):
        decode_access_token(token)


def test_token_with_non_uuid_subject_is_rejected(test_settings):
    token = jwt.encode(
        {"sub": "not-a-uuid", "role": "user", "iat": 1_700_000_000},
        test_settings.auth_jwt_secret,
        algorithm="HS256",
    )

    with pytest.raises(InvalidToken):
        decode_access_token(token)


def test_expiry_is_written_only_when_ttl_configured(monkeypatch):
    monkeypatch.setenv("UTP_AUTH_ACCESS_TOKEN_TTL_SECONDS", "60")
    get_settings.cache_clear()

    claims = decode_access_token(issue_access_token(_transient_user()))

    assert claims.raw["exp"] - claims.raw["iat"] == 60


def test_expired_token_is_rejected(monkeypatch):
    monkeypatch.setenv("UTP_AUTH_ACCESS_TOKEN_TTL_SECONDS", "60")
    get_settings.cache_clear()
    token = issue_access_token(_transient_user(), now=datetime(2020, 1, 1, tzinfo=timezone.utc))

    with pytest.raises(InvalidToken):
        decode_access_token(token)


def test_authorization_header_parsing():
    user = _transient_user()
    token = issue_access_token(user)

    assert parse_authorization_header(f"Bearer {token}").user_id == user.id
    # 重复头被逗号拼接且混入占位符时取真实令牌。
    assert parse_authorization_header(f"Bearer {token}, Bearer {{{{token}}}}").user_id == user.id

    with pytest.raises(InvalidToken):
        parse_authorization_header(None)
    with pytest.raises(InvalidToken):
        parse_authorization_header("Basic abc")
