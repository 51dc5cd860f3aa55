"""
Plug a credential source into boto3 behind botocore's own credential cache.

botocore's RefreshableCredentials is the outer cache: it keeps returning
the same credentials and only calls back into the provider when its
refresh window is reached, so the expensive retrieval happens on expiry
rather than on every request.
"""
import logging
from typing import Optional

import boto3
import botocore.session
from botocore.credentials import Credentials, RefreshableCredentials

from .context import Context
from .errors import SourceError
from .provider import CredentialSource

logger = logging.getLogger(__name__)

METHOD = 'refresh-observer'


def refreshable_credentials(provider: CredentialSource, ctx: Optional[Context] = None,
                            refresh_timeout: Optional[float] = None):
    """
    Wrap provider in botocore credentials.

    Permanent credentials become plain botocore Credentials (never refreshed);
    expiring ones become RefreshableCredentials calling provider.retrieve.

    Args:
        provider: Credential source, normally a RefreshObservingProvider
        ctx: Bounds the initial retrieval only
        refresh_timeout: Deadline in seconds for each later refresh (default: none)

    Raises:
        SourceError: from a refresh, if the source switches to permanent credentials
    """
    initial = provider.retrieve(ctx)
    if initial.is_permanent:
        metadata = initial.to_refresh_metadata()
        return Credentials(metadata['access_key'], metadata['secret_key'], metadata['token'], method=METHOD)

    def refresh():
        # refreshes run long after the caller's context is gone
        if refresh_timeout is None:
            refresh_ctx = Context.background()
        else:
            refresh_ctx = Context.with_timeout(refresh_timeout)
        logger.debug(f"Refreshing credentials through {type(provider).__name__}")
        value = provider.retrieve(refresh_ctx)
        if value.is_permanent:
            raise SourceError(
                f"Source switched from expiring to permanent credentials ({value.access_key_id}); "
                "RefreshableCredentials requires an expiry"
            )
        return value.to_refresh_metadata()

    return RefreshableCredentials.create_from_metadata(
        metadata=initial.to_refresh_metadata(),
        refresh_using=refresh,
        method=METHOD,
    )


def observed_session(provider: CredentialSource, region_name: Optional[str] = None,
                     ctx: Optional[Context] = None) -> boto3.Session:
    """boto3 Session whose clients sign with credentials from provider."""
    botocore_session = botocore.session.get_session()
    # botocore.session.Session has no public setter for resolved credentials
    botocore_session._credentials = refreshable_credentials(provider, ctx)
    return boto3.Session(botocore_session=botocore_session, region_name=region_name)
