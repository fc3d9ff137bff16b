"""Pytest configuration and fixtures."""
import pytest
import pytest_asyncio

from idea_sync.config import Settings
from idea_sync.database import close_db, create_engine, create_session_factory, init_db
from idea_sync.services.record_store import RecordStore


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Isolated settings: a throwaway SQLite file and no external services."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        sync_timeout_seconds=5.0,
        sync_conflict_retries=1,
        encryption_key="",
        google_client_id="",
        google_client_secret="",
        supabase_url="",
        supabase_service_role_key="",
        supabase_user_id="",
        debug=False,
    )


@pytest_asyncio.fixture
async def store(settings):
    """Record store over a fresh database."""
    engine = create_engine(settings)
    await init_db(engine)
    yield RecordStore(create_session_factory(engine))
    await close_db(engine)
