from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, SecretStr, field_validator

PERMANENT_TTL = "N/A"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialValue(BaseModel):
    """
    Immutable snapshot of one set of AWS credentials.

    An absent expires_at means the credentials never expire. Refresh
    detection compares only the key material, see same_identity().
    """

    model_config = ConfigDict(frozen=True)

    access_key_id: str
    secret_access_key: SecretStr
    session_token: SecretStr = SecretStr("")
    expires_at: Optional[datetime] = None

    @field_validator('expires_at')
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def has_session_token(self) -> bool:
        return self.session_token.get_secret_value() != ""

    @property
    def is_permanent(self) -> bool:
        return self.expires_at is None

    def remaining(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        """Signed time left until expiry, None for permanent credentials."""
        if self.expires_at is None:
            return None
        return self.expires_at - (now or utcnow())

    def same_identity(self, other: Optional['CredentialValue']) -> bool:
        if other is None:
            return False
        return (
            self.access_key_id == other.access_key_id
            and self.secret_access_key.get_secret_value() == other.secret_access_key.get_secret_value()
            and self.session_token.get_secret_value() == other.session_token.get_secret_value()
        )

    @classmethod
    def from_botocore(cls, creds: Any, expires_at: Optional[datetime] = None) -> 'CredentialValue':
        """
        Build from botocore Credentials or ReadOnlyCredentials.

        Args:
            creds: Object exposing access_key, secret_key and token
            expires_at: Expiry to attach, botocore frozen credentials carry none
        """
        return cls(
            access_key_id=creds.access_key,
            secret_access_key=creds.secret_key,
            session_token=creds.token or "",
            expires_at=expires_at,
        )

    def to_refresh_metadata(self) -> Dict[str, Optional[str]]:
        """Metadata dict in the shape botocore's RefreshableCredentials expects."""
        return {
            'access_key': self.access_key_id,
            'secret_key': self.secret_access_key.get_secret_value(),
            'token': self.session_token.get_secret_value() or None,
            'expiry_time': self.expires_at.isoformat() if self.expires_at else None,
        }


def format_duration(delta: timedelta) -> str:
    """Render a signed duration as e.g. '1h2m3s', '9m59.5s' or '-30s'."""
    total = delta.total_seconds()
    sign = "-" if total < 0 else ""
    total = round(abs(total), 3)
    if total == 0:
        return "0s"

    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    seconds_text = f"{seconds:.3f}".rstrip('0').rstrip('.')

    text = ""
    if hours:
        text += f"{int(hours)}h"
    if hours or minutes:
        text += f"{int(minutes)}m"
    return f"{sign}{text}{seconds_text}s"


def describe_ttl(value: CredentialValue, now: Optional[datetime] = None) -> str:
    remaining = value.remaining(now)
    if remaining is None:
        return PERMANENT_TTL
    return format_duration(remaining)
