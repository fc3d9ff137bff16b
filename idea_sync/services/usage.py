"""Sync usage metadata reported to Supabase after a successful cycle."""
import logging
from typing import Dict, Optional, Protocol

import httpx

from idea_sync.config import Settings, get_settings
from idea_sync.core.errors import ExternalServiceError
from idea_sync.utils.timestamps import format_timestamp, utcnow

logger = logging.getLogger(__name__)


class UsageReporter(Protocol):
    """Receives post-sync record counts (fire-and-forget)."""

    async def report_sync(self, counts: Dict[str, int]) -> None: ...


class SupabaseUsageReporter:
    """Upserts the ``sync_metadata`` row for this user through the Supabase REST API."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or get_settings()
        self.supabase_url = self.settings.supabase_url.rstrip("/")
        self.service_role_key = self.settings.supabase_service_role_key
        self.user_id = self.settings.supabase_user_id
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_url and self.service_role_key and self.user_id)

    async def report_sync(self, counts: Dict[str, int]) -> None:
        """
        Record the last sync time and note/task counts.

        Raises:
            ExternalServiceError: Supabase rejected the upsert or was unreachable
        """
        if not self.is_configured:
            logger.debug("Supabase not configured; skipping sync usage report")
            return

        url = f"{self.supabase_url}/rest/v1/sync_metadata"
        payload = {
            "user_id": self.user_id,
            "last_sync_at": format_timestamp(utcnow()),
            "sync_status": "idle",
            "notes_count": counts.get("notes", 0),
            "tasks_count": counts.get("tasks", 0),
        }
        headers = {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
            "Content-Type": "application/json",
            "Prefer": "resolution=merge-duplicates",
        }

        try:
            if self._client is not None:
                response = await self._client.post(url, params={"on_conflict": "user_id"}, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.settings.transport_timeout_seconds) as client:
                    response = await client.post(url, params={"on_conflict": "user_id"}, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise ExternalServiceError("supabase", f"Failed to update sync metadata: {exc}") from exc

        if response.status_code not in (200, 201, 204):
            raise ExternalServiceError("supabase", f"Failed to update sync metadata: {response.text[:200]}")
