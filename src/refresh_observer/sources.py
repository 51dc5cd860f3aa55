import json
import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from cachetools import TLRUCache

from .context import Context
from .credentials import CredentialValue, utcnow
from .errors import SourceError
from .provider import CredentialSource

logger = logging.getLogger(__name__)


class StaticSource(CredentialSource):
    """Always returns the same credentials."""

    def __init__(self, access_key_id: str, secret_access_key: str,
                 session_token: str = "", expires_at: Optional[datetime] = None):
        self.value = CredentialValue(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
            expires_at=expires_at,
        )

    def retrieve(self, ctx: Optional[Context] = None) -> CredentialValue:
        if ctx is not None:
            ctx.check()
        return self.value


class SecretsManagerSource(CredentialSource):
    def __init__(self, secret_name: str, client=None, cache_ttl: int = 3600,
                 timer: Callable[[], float] = time.monotonic, clock=None):
        """
        Read credentials stored as JSON in AWS Secrets Manager.

        Args:
            secret_name: Name of the secret in AWS Secrets Manager
            client: secretsmanager client (default: a new boto3 client)
            cache_ttl: Time to live for the cached secret in seconds (default: 1 hour).
                A cached value never outlives its own Expiration.
            timer: Cache timer (default: time.monotonic)
            clock: Wall clock used to measure Expiration (default: utcnow)
        """
        self.secret_name = secret_name
        self.secrets_client = client or boto3.client('secretsmanager')
        self.cache_ttl = cache_ttl
        self.clock = clock or utcnow
        self.cache = TLRUCache(maxsize=1, ttu=self._time_to_use, timer=timer)
        self._lock = threading.Lock()

    def _time_to_use(self, key, value: CredentialValue, now: float) -> float:
        expires = now + self.cache_ttl
        remaining = value.remaining(self.clock())
        if remaining is not None:
            expires = min(expires, now + remaining.total_seconds())
        return expires

    def _fetch(self) -> CredentialValue:
        try:
            response = self.secrets_client.get_secret_value(SecretId=self.secret_name)
            secret = json.loads(response['SecretString'])
        except (ClientError, BotoCoreError) as e:
            raise SourceError(f"Error retrieving secret {self.secret_name}: {str(e)}") from e
        except (KeyError, ValueError) as e:
            raise SourceError(f"Secret {self.secret_name} is not valid JSON: {str(e)}") from e

        try:
            return CredentialValue(
                access_key_id=secret['AccessKeyId'],
                secret_access_key=secret['SecretAccessKey'],
                session_token=secret.get('SessionToken') or "",
                expires_at=secret.get('Expiration'),
            )
        except (KeyError, ValueError) as e:
            raise SourceError(f"Secret {self.secret_name} is missing credential fields: {str(e)}") from e

    def retrieve(self, ctx: Optional[Context] = None) -> CredentialValue:
        if ctx is not None:
            ctx.check()
        with self._lock:
            credentials = self.cache.get('credentials')
            if credentials is not None:
                logger.debug("Retrieved credentials from cache")
                return credentials

            credentials = self._fetch()
            # already-expired values are not stored
            self.cache['credentials'] = credentials
        logger.info(f"Retrieved fresh credentials from Secrets Manager secret {self.secret_name}")
        return credentials

    def clear_cache(self) -> None:
        """Clear the cached secret."""
        with self._lock:
            self.cache.clear()
        logger.debug("Credentials cache cleared")


class AssumeRoleSource(CredentialSource):
    """Temporary credentials from STS AssumeRole; every call assumes the role again."""

    def __init__(self, role_arn: str, session_name: str = 'refresh-observer',
                 client=None, duration_seconds: int = 3600):
        self.role_arn = role_arn
        self.session_name = session_name
        self.duration_seconds = duration_seconds
        self.sts = client or boto3.client('sts')

    def retrieve(self, ctx: Optional[Context] = None) -> CredentialValue:
        if ctx is not None:
            ctx.check()
        try:
            response = self.sts.assume_role(
                RoleArn=self.role_arn,
                RoleSessionName=self.session_name,
                DurationSeconds=self.duration_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise SourceError(f"Error assuming role {self.role_arn}: {str(e)}") from e

        credentials = response['Credentials']
        logger.info(f"Assumed role {self.role_arn}, credentials expire at {credentials['Expiration']}")
        return CredentialValue(
            access_key_id=credentials['AccessKeyId'],
            secret_access_key=credentials['SecretAccessKey'],
            session_token=credentials['SessionToken'],
            expires_at=credentials['Expiration'],
        )
