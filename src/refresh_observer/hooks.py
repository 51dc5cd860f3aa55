import logging
import re
import threading
from abc import ABC, abstractmethod
from typing import Any, MutableMapping, Optional

from pydantic import BaseModel, ConfigDict

from .credentials import CredentialValue

logger = logging.getLogger(__name__)

CONTEXT_KEY = 'refresh_observer_signing_identity'
CREDENTIAL_RE = re.compile(r'Credential=([^/,\s]+)/')


class SigningIdentity(BaseModel):
    """The non-secret part of the credentials that signed one request."""

    model_config = ConfigDict(frozen=True)

    access_key_id: str
    has_session_token: bool

    def matches(self, creds: Optional[CredentialValue]) -> bool:
        if creds is None:
            return False
        return (
            self.access_key_id == creds.access_key_id
            and self.has_session_token == creds.has_session_token
        )


class PipelineHook(ABC):
    @abstractmethod
    def signing_credentials(self, context: MutableMapping[str, Any]) -> Optional[SigningIdentity]:
        """Identity used to sign the call owning context, or None if it was not signed."""


def _header(headers, name: str) -> Optional[str]:
    value = headers.get(name)
    if isinstance(value, bytes):
        value = value.decode('utf-8')
    return value


def identity_from_headers(headers) -> Optional[SigningIdentity]:
    """Parse the SigV4 Authorization header of a signed request."""
    authorization = _header(headers, 'Authorization')
    if not authorization:
        return None
    match = CREDENTIAL_RE.search(authorization)
    if not match:
        return None
    return SigningIdentity(
        access_key_id=match.group(1),
        has_session_token=bool(_header(headers, 'X-Amz-Security-Token')),
    )


class BotocoreSigningHook(PipelineHook):
    """
    Records which access key signed each request made by a botocore client.

    The handler runs on request-created after botocore's signer, reads the
    signed headers, and stores the identity in the request context dict
    (the same dict handed to after-call handlers). It never touches the
    credential provider.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._last: Optional[SigningIdentity] = None

    def attach(self, client) -> 'BotocoreSigningHook':
        client.meta.events.register_last('request-created', self._on_request_created)
        return self

    def _on_request_created(self, request, operation_name=None, **kwargs) -> None:
        identity = identity_from_headers(request.headers)
        if identity is None:
            return
        context = getattr(request, 'context', None)
        if context is not None:
            context[CONTEXT_KEY] = identity
        with self._lock:
            self._last = identity
        logger.debug(f"{operation_name} signed with AccessKey={identity.access_key_id}")

    def signing_credentials(self, context: MutableMapping[str, Any]) -> Optional[SigningIdentity]:
        if context is None:
            return None
        return context.get(CONTEXT_KEY)

    def last_signed(self) -> Optional[SigningIdentity]:
        with self._lock:
            return self._last
