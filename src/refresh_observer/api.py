import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Security
from fastapi.security import APIKeyHeader
from pydantic import BaseModel

from .credentials import describe_ttl
from .observations import MemorySink
from .provider import RefreshObservingProvider

logger = logging.getLogger(__name__)

API_KEY_NAME = "X-API-Key"


class CredentialStatus(BaseModel):
    access_key_id: str
    expires_in: str
    session_token_present: bool
    permanent: bool


class ObservationRecord(BaseModel):
    kind: str
    detail: dict


def create_app(provider: RefreshObservingProvider, memory_sink: Optional[MemorySink] = None,
               api_key: Optional[str] = None) -> FastAPI:
    """
    Build the status API for one provider.

    Args:
        provider: Provider whose last-seen credentials are reported
        memory_sink: Sink collecting the provider's observations, enables /credentials/observations
        api_key: Required X-API-Key value; None disables the check
    """
    app = FastAPI(title="Credential Refresh Observer")
    api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)

    async def verify_api_key(key: Optional[str] = Security(api_key_header)):
        """Verify the API key."""
        if api_key is not None and key != api_key:
            raise HTTPException(status_code=403, detail="Invalid API key")
        return key

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/credentials/status", response_model=CredentialStatus)
    async def credential_status(key: str = Depends(verify_api_key)):
        """Identity of the last retrieved credentials. Never includes secret material."""
        creds, has_seen_any = provider.snapshot()
        if not has_seen_any:
            raise HTTPException(status_code=404, detail="No credentials retrieved yet")
        return CredentialStatus(
            access_key_id=creds.access_key_id,
            expires_in=describe_ttl(creds, provider.clock()),
            session_token_present=creds.has_session_token,
            permanent=creds.is_permanent,
        )

    @app.get("/credentials/observations", response_model=List[ObservationRecord])
    async def recent_observations(limit: int = Query(50, ge=1, le=1000),
                                  key: str = Depends(verify_api_key)):
        """Most recent observations, newest last."""
        if memory_sink is None:
            raise HTTPException(status_code=404, detail="Observation history is not enabled")
        records = []
        for observation in memory_sink.observations[-limit:]:
            detail = observation.model_dump(mode='json', exclude={'kind'})
            records.append(ObservationRecord(kind=observation.kind, detail=detail))
        return records

    return app
