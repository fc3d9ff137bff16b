"""Shared test infrastructure for store, merge and sync tests.

Contains record payload builders, snapshot builders and in-memory fakes for the
transport, credential provider and usage reporter.
NOT a test file -- imported by test_*.py modules.
"""
import asyncio
import json
from typing import Any, Dict, List, Optional

from idea_sync.core.errors import ExternalServiceError, RemoteConflictError, TransportError
from idea_sync.services.drive_transport import RemoteFile


# ---------------------------------------------------------------------------
# Record payloads (wire format, camelCase)
# ---------------------------------------------------------------------------

def task_payload(uuid: Optional[str] = None, title: str = "Buy milk", updated_at: Optional[str] = None, **extra) -> dict:
    payload = {
        "title": title,
        "completed": False,
        "priority": "medium",
        "category": "Shopping",
    }
    if uuid is not None:
        payload["uuid"] = uuid
    if updated_at is not None:
        payload["updatedAt"] = updated_at
    payload.update(extra)
    return payload


def note_payload(uuid: Optional[str] = None, title: str = "Idea", updated_at: Optional[str] = None, **extra) -> dict:
    payload = {
        "title": title,
        "content": "Voice memo about a new idea",
        "category": "Ideas",
        "date": "2024-01-01T09:00:00.000Z",
    }
    if uuid is not None:
        payload["uuid"] = uuid
    if updated_at is not None:
        payload["updatedAt"] = updated_at
    payload.update(extra)
    return payload


def category_payload(uuid: Optional[str] = None, name: str = "Shopping", **extra) -> dict:
    payload = {
        "name": name,
        "type": "task",
        "createdBy": "user",
        "keywords": ["milk", "groceries"],
        "count": 0,
        "createdAt": "2024-01-01T00:00:00.000Z",
    }
    if uuid is not None:
        payload["uuid"] = uuid
    payload.update(extra)
    return payload


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

def snapshot_document(version: str = "1.0.0", **collections: List[dict]) -> dict:
    """Build a backup document; keyword names are snapshot keys (notes, chatSessions, ...)."""
    return {
        "version": version,
        "lastSync": "2024-01-02T12:00:00.000Z",
        "data": dict(collections),
    }


def snapshot_bytes(**collections: List[dict]) -> bytes:
    return json.dumps(snapshot_document(**collections)).encode("utf-8")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeTransport:
    """
    In-memory snapshot store.

    - content: current remote bytes (None means no remote file)
    - fail_on: "find", "download" or "upload" to raise TransportError there
    - conflicts: number of uploads that hit a concurrent remote write
    - download_gate: when set, download() waits on it (for concurrency tests)
    """

    def __init__(self, content: Optional[bytes] = None, fail_on: Optional[str] = None, conflicts: int = 0):
        self.content = content
        self.version: Optional[int] = 1 if content is not None else None
        self.fail_on = fail_on
        self.conflicts = conflicts
        self.download_gate: Optional[asyncio.Event] = None
        self.download_started = asyncio.Event()

        self.find_calls = 0
        self.download_calls = 0
        self.upload_calls = 0
        self.uploads: List[bytes] = []

    async def find(self, filename: str) -> Optional[RemoteFile]:
        self.find_calls += 1
        if self.fail_on == "find":
            raise TransportError("Failed to search file: Internal Server Error", status_code=500)
        if self.content is None:
            return None
        return RemoteFile(id="backup-file", version=str(self.version))

    async def download(self, remote_id: str) -> bytes:
        self.download_calls += 1
        self.download_started.set()
        if self.download_gate is not None:
            await self.download_gate.wait()
        if self.fail_on == "download":
            raise TransportError("Failed to download file: Not Found", status_code=404)
        return self.content

    async def upload(
        self,
        filename: str,
        content: bytes,
        check_version: bool = False,
        expected_version: Optional[str] = None,
    ) -> RemoteFile:
        self.upload_calls += 1
        if self.fail_on == "upload":
            raise TransportError("Failed to update file: Service Unavailable", status_code=503)

        if self.conflicts > 0:
            # Another device wrote in between
            self.conflicts -= 1
            self.version = (self.version or 0) + 1
            raise RemoteConflictError(expected_version, str(self.version))

        self.content = content
        self.version = (self.version or 0) + 1
        self.uploads.append(content)
        return RemoteFile(id="backup-file", version=str(self.version))

    def last_upload(self) -> Dict[str, Any]:
        return json.loads(self.uploads[-1].decode("utf-8"))


class FakeCredentials:
    def __init__(self, token: Optional[str] = "test-access-token"):
        self.token = token
        self.calls = 0

    async def get_access_token(self) -> Optional[str]:
        self.calls += 1
        return self.token


class FakeUsageReporter:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.reports: List[Dict[str, int]] = []

    async def report_sync(self, counts: Dict[str, int]) -> None:
        self.reports.append(counts)
        if self.fail:
            raise ExternalServiceError("supabase", "Failed to update sync metadata: boom")
