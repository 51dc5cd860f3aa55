from datetime import datetime, timedelta, timezone

import pytest
from botocore.credentials import Credentials, RefreshableCredentials
from pydantic import ValidationError

from refresh_observer.credentials import CredentialValue, PERMANENT_TTL, describe_ttl, format_duration
from tests.conftest import NOW, make_creds


@pytest.mark.parametrize("delta, expected", [
    (timedelta(0), "0s"),
    (timedelta(seconds=30), "30s"),
    (timedelta(seconds=-30), "-30s"),
    (timedelta(minutes=10), "10m0s"),
    (timedelta(minutes=9, seconds=59, milliseconds=500), "9m59.5s"),
    (timedelta(hours=1), "1h0m0s"),
    (timedelta(hours=2, minutes=3, seconds=4), "2h3m4s"),
    (-timedelta(minutes=5, seconds=1), "-5m1s"),
])
def test_format_duration(delta, expected):
    assert format_duration(delta) == expected


def test_identity_ignores_expiry():
    first = make_creds(expires_at=NOW + timedelta(minutes=10))
    second = make_creds(expires_at=NOW + timedelta(minutes=9))
    assert first.same_identity(second)


@pytest.mark.parametrize("changes", [
    {"access_key_id": "AKIA2"},
    {"secret": "s2"},
    {"token": "tok"},
])
def test_identity_detects_key_material_changes(changes):
    assert not make_creds().same_identity(make_creds(**changes))


def test_identity_against_none():
    assert not make_creds().same_identity(None)


def test_secret_never_in_repr():
    creds = make_creds(secret="super-secret", token="token-value")
    assert "super-secret" not in repr(creds)
    assert "token-value" not in repr(creds)
    assert "AKIA1" in repr(creds)


def test_session_token_presence():
    assert not make_creds().has_session_token
    assert make_creds(token="abc").has_session_token


def test_naive_expiry_is_utc():
    creds = make_creds(expires_at=datetime(2024, 1, 1, 12, 10))
    assert creds.expires_at.tzinfo is timezone.utc
    assert creds.remaining(NOW) == timedelta(minutes=10)


def test_remaining_is_signed():
    creds = make_creds(expires_at=NOW - timedelta(seconds=45))
    assert creds.remaining(NOW) == timedelta(seconds=-45)
    assert describe_ttl(creds, NOW) == "-45s"


def test_permanent_credentials():
    creds = make_creds()
    assert creds.is_permanent
    assert creds.remaining(NOW) is None
    assert describe_ttl(creds, NOW) == PERMANENT_TTL


def test_frozen():
    creds = make_creds()
    with pytest.raises(ValidationError):
        creds.access_key_id = "AKIA2"


def test_from_botocore():
    creds = CredentialValue.from_botocore(Credentials("AKIA9", "secret", None))
    assert creds.access_key_id == "AKIA9"
    assert creds.secret_access_key.get_secret_value() == "secret"
    assert not creds.has_session_token
    assert creds.is_permanent


def test_refresh_metadata_is_accepted_by_botocore():
    creds = make_creds(token="tok", expires_at=NOW + timedelta(hours=1))
    metadata = creds.to_refresh_metadata()
    assert metadata == {
        'access_key': 'AKIA1',
        'secret_key': 's1',
        'token': 'tok',
        'expiry_time': '2024-01-01T13:00:00+00:00',
    }
    refreshable = RefreshableCredentials.create_from_metadata(
        metadata=metadata, refresh_using=lambda: metadata, method='test',
    )
    assert refreshable.method == 'test'


def test_refresh_metadata_without_token():
    assert make_creds().to_refresh_metadata()['token'] is None
