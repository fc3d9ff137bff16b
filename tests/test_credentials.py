"""Stored Google token provider tests."""
from datetime import datetime, timedelta

import pytest
from cryptography.fernet import Fernet
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials

from idea_sync.services.credentials import ACCESS_TOKEN_KEY, StoredTokenCredentialProvider
from idea_sync.utils.encryption import EncryptionService


@pytest.fixture
def oauth_settings(settings):
    settings.google_client_id = "client-id.apps.googleusercontent.com"
    settings.google_client_secret = "client-secret"
    return settings


@pytest.mark.asyncio
async def test_no_stored_token(store, settings):
    provider = StoredTokenCredentialProvider(store, EncryptionService(), settings)

    assert await provider.get_access_token() is None


@pytest.mark.asyncio
async def test_saved_token_is_returned(store, settings):
    provider = StoredTokenCredentialProvider(store, EncryptionService(), settings)

    await provider.save_tokens("ya29.token", expiry=datetime.utcnow() + timedelta(hours=1))

    assert await provider.get_access_token() == "ya29.token"


@pytest.mark.asyncio
async def test_tokens_are_encrypted_at_rest(store, settings):
    encryption = EncryptionService(Fernet.generate_key().decode())
    provider = StoredTokenCredentialProvider(store, encryption, settings)

    await provider.save_tokens("ya29.secret", refresh_token="1//refresh")

    stored = await store.get_setting(ACCESS_TOKEN_KEY)
    assert stored.startswith("enc:")
    assert "ya29.secret" not in stored
    assert await provider.get_access_token() == "ya29.secret"


@pytest.mark.asyncio
async def test_token_unreadable_with_other_key(store, settings):
    writer = StoredTokenCredentialProvider(store, EncryptionService(Fernet.generate_key().decode()), settings)
    await writer.save_tokens("ya29.secret")

    reader = StoredTokenCredentialProvider(store, EncryptionService(Fernet.generate_key().decode()), settings)

    assert await reader.get_access_token() is None


@pytest.mark.asyncio
async def test_expired_token_without_refresh_token(store, oauth_settings):
    provider = StoredTokenCredentialProvider(store, EncryptionService(), oauth_settings)
    await provider.save_tokens("ya29.old", expiry=datetime.utcnow() - timedelta(hours=1))

    assert await provider.get_access_token() is None


@pytest.mark.asyncio
async def test_expired_token_is_refreshed(store, oauth_settings, monkeypatch):
    new_expiry = datetime.utcnow() + timedelta(hours=1)

    def fake_refresh(self, request):
        self.token = "ya29.new"
        self.expiry = new_expiry

    monkeypatch.setattr(Credentials, "refresh", fake_refresh)
    provider = StoredTokenCredentialProvider(store, EncryptionService(), oauth_settings)
    await provider.save_tokens("ya29.old", refresh_token="1//refresh", expiry=datetime.utcnow() - timedelta(hours=1))

    assert await provider.get_access_token() == "ya29.new"
    # The refreshed token is persisted
    assert await store.get_setting(ACCESS_TOKEN_KEY) == "ya29.new"


@pytest.mark.asyncio
async def test_refresh_failure_returns_none(store, oauth_settings, monkeypatch):
    def fake_refresh(self, request):
        raise RefreshError("invalid_grant: Token has been expired or revoked.")

    monkeypatch.setattr(Credentials, "refresh", fake_refresh)
    provider = StoredTokenCredentialProvider(store, EncryptionService(), oauth_settings)
    await provider.save_tokens("ya29.old", refresh_token="1//refresh", expiry=datetime.utcnow() - timedelta(hours=1))

    assert await provider.get_access_token() is None


@pytest.mark.asyncio
async def test_clear_removes_tokens(store, settings):
    provider = StoredTokenCredentialProvider(store, EncryptionService(), settings)
    await provider.save_tokens("ya29.token", refresh_token="1//refresh")

    await provider.clear()

    assert await provider.get_access_token() is None
