"""Sync orchestrator: one full download -> merge -> export -> upload cycle."""
import asyncio
import itertools
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from idea_sync.config import Settings, get_settings
from idea_sync.core.errors import APIError, CorruptSnapshotError, ErrorCode, RemoteConflictError
from idea_sync.schemas.sync_schemas import SyncResult
from idea_sync.services.credentials import CredentialProvider
from idea_sync.services.drive_transport import GoogleDriveTransport, SnapshotTransport
from idea_sync.services.merge import MergeEngine
from idea_sync.services.record_store import RecordStore
from idea_sync.services.snapshot import decode_snapshot, encode_snapshot, export_collections
from idea_sync.services.usage import UsageReporter
from idea_sync.utils.timestamps import format_timestamp, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "last_sync_at"

SyncListener = Callable[[bool], None]
TransportFactory = Callable[[str], SnapshotTransport]


class SyncManager:
    """
    Coordinates sync cycles against the remote snapshot.

    State is ``idle -> syncing -> idle``. Only one cycle runs at a time per
    instance; a call to ``sync()`` while a cycle is in flight returns at once.
    Failures never escape ``sync()``: they are logged and reported through the
    returned SyncResult (also kept as ``last_result``).

    Args:
        store: local record store
        credentials: source of the Drive bearer token
        transport_factory: builds a transport for a given access token
        usage_reporter: optional collaborator told about post-sync counts
        settings: application settings
    """

    def __init__(
        self,
        store: RecordStore,
        credentials: CredentialProvider,
        transport_factory: Optional[TransportFactory] = None,
        usage_reporter: Optional[UsageReporter] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.credentials = credentials
        self.transport_factory = transport_factory or self._drive_transport
        self.usage_reporter = usage_reporter
        self.merge_engine = MergeEngine(store)
        self.last_result: Optional[SyncResult] = None

        self._is_syncing = False
        self._listeners: Dict[int, SyncListener] = {}
        self._listener_ids = itertools.count()

    def _drive_transport(self, access_token: str) -> SnapshotTransport:
        return GoogleDriveTransport(access_token, self.settings)

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    # -- Observers --

    def subscribe(self, listener: SyncListener) -> Callable[[], None]:
        """Register ``listener(is_syncing)``; returns an idempotent unsubscribe function."""
        listener_id = next(self._listener_ids)
        self._listeners[listener_id] = listener

        def unsubscribe() -> None:
            self._listeners.pop(listener_id, None)

        return unsubscribe

    def _notify_listeners(self) -> None:
        for listener in list(self._listeners.values()):
            try:
                listener(self._is_syncing)
            except Exception:
                logger.exception("Sync status listener raised")

    # -- Sync --

    async def sync(self) -> SyncResult:
        """Run one sync cycle unless one is already running."""
        if self._is_syncing:
            logger.info("Sync already in progress; ignoring request")
            return SyncResult(status="skipped", reason="already_syncing")

        self._is_syncing = True
        self._notify_listeners()
        started_at = utcnow()

        try:
            try:
                result = await asyncio.wait_for(
                    self._run_cycle(), timeout=self.settings.sync_timeout_seconds
                )
            except asyncio.TimeoutError:
                logger.error(f"Sync timed out after {self.settings.sync_timeout_seconds}s")
                result = SyncResult(
                    status="failed",
                    error=f"Sync timed out after {self.settings.sync_timeout_seconds}s",
                    error_code=ErrorCode.EXTERNAL_TIMEOUT.value,
                )
            except APIError as exc:
                logger.error(f"Sync failed: {exc.code.value} - {exc.message}")
                result = SyncResult(status="failed", error=exc.message, error_code=exc.code.value)
            except Exception as exc:
                logger.exception(f"Sync failed: {type(exc).__name__}: {exc}")
                result = SyncResult(
                    status="failed",
                    error=f"{type(exc).__name__}: {exc}",
                    error_code=ErrorCode.INTERNAL_ERROR.value,
                )

            result.started_at = started_at
            result.finished_at = utcnow()
            self.last_result = result
            return result
        finally:
            self._is_syncing = False
            self._notify_listeners()

    async def _run_cycle(self) -> SyncResult:
        access_token = await self.credentials.get_access_token()
        if not access_token:
            logger.warning("No Google access token found. Cannot sync.")
            return SyncResult(status="skipped", reason="no_credentials")

        transport = self.transport_factory(access_token)
        filename = self.settings.backup_filename
        result = SyncResult(status="success")
        max_attempts = self.settings.sync_conflict_retries + 1

        for attempt in range(1, max_attempts + 1):
            result.attempts = attempt

            # 1. Download and merge remote -> local
            remote = await transport.find(filename)
            result.remote_found = remote is not None
            if remote is not None:
                raw = await transport.download(remote.id)
                try:
                    snapshot = decode_snapshot(raw)
                except CorruptSnapshotError as exc:
                    logger.error(f"Remote snapshot unreadable, local state will replace it: {exc.message}")
                    result.remote_corrupt = True
                else:
                    result.merge = await self.merge_engine.merge_snapshot(snapshot)

            # 2. Export local state (post-merge) and upload
            await self._prune_tombstones()
            data = await export_collections(self.store)
            content = encode_snapshot(data, self.settings.snapshot_version)
            try:
                await transport.upload(
                    filename,
                    content,
                    check_version=True,
                    expected_version=remote.version if remote is not None else None,
                )
            except RemoteConflictError as exc:
                if attempt >= max_attempts:
                    raise
                logger.warning(f"{exc.message}; merging again (attempt {attempt + 1}/{max_attempts})")
                continue
            break

        result.uploaded_counts = {key: len(records) for key, records in data.items()}

        # 3. Metadata, only after a successful upload
        await self.store.set_setting(LAST_SYNC_KEY, format_timestamp(utcnow()))
        await self._report_usage(result.uploaded_counts)

        logger.info("Sync completed successfully")
        return result

    async def _prune_tombstones(self) -> None:
        cutoff = utcnow() - timedelta(days=self.settings.tombstone_retention_days)
        pruned = await self.store.prune_tombstones(cutoff)
        if pruned:
            logger.info(f"Pruned {pruned} expired tombstones")

    async def _report_usage(self, counts: Dict[str, int]) -> None:
        if self.usage_reporter is None:
            return
        try:
            await self.usage_reporter.report_sync(counts)
        except Exception as exc:
            # Usage accounting is best effort
            logger.warning(f"Failed to report sync usage: {type(exc).__name__}: {exc}")

    async def last_sync_at(self) -> Optional[datetime]:
        """Time of the last successful cycle on this device."""
        return parse_timestamp(await self.store.get_setting(LAST_SYNC_KEY))
