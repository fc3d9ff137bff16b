"""Bearer credential provider for the Drive transport.

Google OAuth tokens are kept in the local settings table (Fernet-encrypted when
an encryption key is configured). An expired access token is refreshed with
google-auth when a refresh token and OAuth client credentials are available.
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional, Protocol

from google.auth.exceptions import RefreshError, TransportError as GoogleTransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from idea_sync.config import Settings, get_settings
from idea_sync.services.record_store import RecordStore
from idea_sync.utils.encryption import EncryptionService
from idea_sync.utils.timestamps import format_timestamp, parse_timestamp, to_utc_naive

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "google_access_token"
REFRESH_TOKEN_KEY = "google_refresh_token"
TOKEN_EXPIRY_KEY = "google_token_expiry"


class CredentialProvider(Protocol):
    """Supplies the opaque bearer credential, or None when signed out."""

    async def get_access_token(self) -> Optional[str]: ...


class StoredTokenCredentialProvider:
    """Reads (and refreshes) the Google access token stored on this device."""

    def __init__(
        self,
        store: RecordStore,
        encryption: EncryptionService,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.encryption = encryption
        self.settings = settings or get_settings()

    async def save_tokens(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        expiry: Optional[datetime] = None,
    ) -> None:
        """Persist tokens obtained from the sign-in flow."""
        await self.store.set_setting(ACCESS_TOKEN_KEY, self.encryption.encrypt(access_token))
        if refresh_token:
            await self.store.set_setting(REFRESH_TOKEN_KEY, self.encryption.encrypt(refresh_token))
        if expiry is not None:
            await self.store.set_setting(TOKEN_EXPIRY_KEY, format_timestamp(expiry))
        else:
            await self.store.delete_setting(TOKEN_EXPIRY_KEY)
        logger.info("Stored Google credentials")

    async def clear(self) -> None:
        """Forget stored tokens (sign out)."""
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, TOKEN_EXPIRY_KEY):
            await self.store.delete_setting(key)
        logger.info("Cleared Google credentials")

    async def get_access_token(self) -> Optional[str]:
        """
        Return a usable access token, refreshing it first if it has expired.

        Returns None when no token is stored or an expired token cannot be refreshed.
        """
        access_token = self.encryption.decrypt(await self.store.get_setting(ACCESS_TOKEN_KEY) or "")
        if not access_token:
            return None

        refresh_token = self.encryption.decrypt(await self.store.get_setting(REFRESH_TOKEN_KEY) or "")
        expiry = parse_timestamp(await self.store.get_setting(TOKEN_EXPIRY_KEY))

        creds = Credentials(
            token=access_token,
            refresh_token=refresh_token or None,
            token_uri=self.settings.google_token_uri,
            client_id=self.settings.google_client_id or None,
            client_secret=self.settings.google_client_secret or None,
            expiry=expiry,
        )

        if not creds.expired:
            return creds.token

        if not (creds.refresh_token and self.settings.google_client_id and self.settings.google_client_secret):
            logger.warning("Google access token expired and cannot be refreshed; sign in again")
            return None

        try:
            # google-auth refreshes synchronously
            await asyncio.to_thread(creds.refresh, Request())
        except (RefreshError, GoogleTransportError) as exc:
            logger.error(f"Failed to refresh Google access token: {exc}")
            return None

        await self.save_tokens(
            creds.token,
            refresh_token=creds.refresh_token,
            expiry=to_utc_naive(creds.expiry) if creds.expiry else None,
        )
        logger.info("Refreshed Google access token")
        return creds.token
