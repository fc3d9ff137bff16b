"""Sync control: run a cycle, inspect status, manage the Google credentials."""
import logging

from fastapi import APIRouter, Depends, Request

from idea_sync.core.middleware import get_request_id
from idea_sync.core.responses import MessageResponse
from idea_sync.dependencies import get_credentials, get_sync_manager
from idea_sync.schemas.sync_schemas import CredentialsUpdate, SyncResult, SyncStatusResponse
from idea_sync.services.credentials import StoredTokenCredentialProvider
from idea_sync.services.sync_manager import SyncManager
from idea_sync.utils.timestamps import to_utc_naive

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=SyncResult)
async def run_sync(manager: SyncManager = Depends(get_sync_manager)):
    """
    Run one sync cycle and return its outcome.

    Sync failures are reported in the body (``status: failed``), not as HTTP
    errors. A request made while a cycle is running returns ``skipped``.
    """
    return await manager.sync()


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(manager: SyncManager = Depends(get_sync_manager)):
    """Current sync state and the last outcome."""
    return SyncStatusResponse(
        is_syncing=manager.is_syncing,
        last_sync_at=await manager.last_sync_at(),
        last_result=manager.last_result,
    )


@router.put("/credentials", response_model=MessageResponse)
async def store_credentials(
    data: CredentialsUpdate,
    request: Request,
    credentials: StoredTokenCredentialProvider = Depends(get_credentials),
):
    """Store Google OAuth tokens obtained by the client's sign-in flow."""
    await credentials.save_tokens(
        data.access_token,
        refresh_token=data.refresh_token,
        expiry=to_utc_naive(data.expiry) if data.expiry else None,
    )
    return MessageResponse(message="Google credentials stored", request_id=get_request_id(request))


@router.delete("/credentials", response_model=MessageResponse)
async def clear_credentials(
    request: Request,
    credentials: StoredTokenCredentialProvider = Depends(get_credentials),
):
    """Forget the stored Google tokens."""
    await credentials.clear()
    return MessageResponse(message="Google credentials removed", request_id=get_request_id(request))
