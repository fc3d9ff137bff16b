"""Google Drive transport for the snapshot file (appDataFolder)."""
import json
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol

import httpx

from idea_sync.config import Settings, get_settings
from idea_sync.core.errors import RemoteConflictError, TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteFile:
    """A file in the remote blob store."""
    id: str
    version: Optional[str] = None


class SnapshotTransport(Protocol):
    """What the sync manager needs from a remote snapshot store."""

    async def find(self, filename: str) -> Optional[RemoteFile]: ...

    async def download(self, remote_id: str) -> bytes: ...

    async def upload(
        self,
        filename: str,
        content: bytes,
        check_version: bool = False,
        expected_version: Optional[str] = None,
    ) -> RemoteFile: ...


class GoogleDriveTransport:
    """Find, download and upload the backup file through the Drive v3 REST API."""

    def __init__(
        self,
        access_token: str,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self.access_token = access_token
        self.folder = self.settings.drive_folder
        self.api_url = self.settings.drive_api_url.rstrip("/")
        self.upload_url = self.settings.drive_upload_url.rstrip("/")
        self._client = client

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
        else:
            async with httpx.AsyncClient(timeout=self.settings.transport_timeout_seconds) as client:
                yield client

    async def _request(self, method: str, url: str, action: str, **kwargs) -> httpx.Response:
        """Send an authenticated request; any failure becomes a TransportError."""
        headers = {"Authorization": f"Bearer {self.access_token}"}
        headers.update(kwargs.pop("headers", {}))

        try:
            async with self._http() as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to {action}: {type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            reason = response.reason_phrase or response.text[:200]
            raise TransportError(f"Failed to {action}: {reason}", status_code=response.status_code)

        return response

    async def find(self, filename: str) -> Optional[RemoteFile]:
        """Locate the file by name inside the app folder."""
        query = f"name='{filename}' and '{self.folder}' in parents and trashed=false"
        response = await self._request(
            "GET",
            f"{self.api_url}/files",
            "search file",
            params={
                "q": query,
                "spaces": self.folder,
                "fields": "files(id,name,version,modifiedTime)",
            },
        )

        files = _json(response, "search file").get("files") or []
        if not files:
            return None
        first = files[0]
        return RemoteFile(id=first["id"], version=_version_of(first))

    async def download(self, remote_id: str) -> bytes:
        """Fetch the raw file content."""
        response = await self._request(
            "GET",
            f"{self.api_url}/files/{remote_id}",
            "download file",
            params={"alt": "media"},
        )
        return response.content

    async def upload(
        self,
        filename: str,
        content: bytes,
        check_version: bool = False,
        expected_version: Optional[str] = None,
    ) -> RemoteFile:
        """
        Create the file, or overwrite the existing one.

        With ``check_version`` an existing file whose version differs from
        ``expected_version`` (or any existing file when ``expected_version``
        is None) is left untouched and RemoteConflictError is raised.
        """
        existing = await self.find(filename)

        if existing is None:
            return await self._create(filename, content)

        if check_version and existing.version != expected_version:
            raise RemoteConflictError(expected_version, existing.version)

        return await self._update(existing.id, content)

    async def _create(self, filename: str, content: bytes) -> RemoteFile:
        metadata = {
            "name": filename,
            "mimeType": "application/json",
            "parents": [self.folder],
        }
        boundary = f"idea-sync-{uuid.uuid4().hex}"
        body = b"".join([
            f"--{boundary}\r\n".encode(),
            b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
            json.dumps(metadata).encode("utf-8"),
            f"\r\n--{boundary}\r\n".encode(),
            b"Content-Type: application/json\r\n\r\n",
            content,
            f"\r\n--{boundary}--\r\n".encode(),
        ])

        response = await self._request(
            "POST",
            f"{self.upload_url}/files",
            "create file",
            params={"uploadType": "multipart", "fields": "id,version"},
            content=body,
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
        )
        data = _json(response, "create file")
        logger.info(f"Created remote snapshot {data.get('id')}")
        return RemoteFile(id=data["id"], version=_version_of(data))

    async def _update(self, file_id: str, content: bytes) -> RemoteFile:
        response = await self._request(
            "PATCH",
            f"{self.upload_url}/files/{file_id}",
            "update file",
            params={"uploadType": "media", "fields": "id,version"},
            content=content,
            headers={"Content-Type": "application/json"},
        )
        data = _json(response, "update file")
        return RemoteFile(id=data.get("id", file_id), version=_version_of(data))


def _version_of(data: dict) -> Optional[str]:
    version = data.get("version")
    return str(version) if version is not None else None


def _json(response: httpx.Response, action: str) -> dict:
    try:
        data = response.json()
    except ValueError as exc:
        raise TransportError(f"Failed to {action}: response is not JSON", status_code=response.status_code) from exc
    if not isinstance(data, dict):
        raise TransportError(f"Failed to {action}: unexpected response body", status_code=response.status_code)
    return data
