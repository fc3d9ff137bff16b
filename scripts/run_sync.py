#!/usr/bin/env python3
"""
Run one sync cycle against the configured local database, outside the API.

Reads settings from the environment / .env like the API does.

Usage examples (run from repo root):
  python scripts/run_sync.py
  python scripts/run_sync.py --export backup.json
  python scripts/run_sync.py --skip-sync --export backup.json
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


async def _run(export_path: Optional[Path], skip_sync: bool) -> int:
    from idea_sync.config import get_settings
    from idea_sync.database import close_db, create_engine, create_session_factory, init_db
    from idea_sync.services.credentials import StoredTokenCredentialProvider
    from idea_sync.services.record_store import RecordStore
    from idea_sync.services.snapshot import encode_snapshot, export_collections
    from idea_sync.services.sync_manager import SyncManager
    from idea_sync.services.usage import SupabaseUsageReporter
    from idea_sync.utils.encryption import EncryptionService

    settings = get_settings()
    engine = create_engine(settings)
    exit_code = 0
    try:
        await init_db(engine)
        store = RecordStore(create_session_factory(engine))
        await store.backfill_identity()

        if not skip_sync:
            credentials = StoredTokenCredentialProvider(
                store, EncryptionService(settings.encryption_key), settings
            )
            manager = SyncManager(
                store,
                credentials,
                usage_reporter=SupabaseUsageReporter(settings),
                settings=settings,
            )
            result = await manager.sync()
            print(result.model_dump_json(indent=2))
            if result.status == "failed":
                exit_code = 1

        if export_path is not None:
            data = await export_collections(store)
            export_path.write_bytes(encode_snapshot(data, settings.snapshot_version))
            print(f"Wrote local snapshot to {export_path}", file=sys.stderr)
    finally:
        await close_db(engine)

    return exit_code


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync the local store with the Google Drive backup.")
    parser.add_argument("--export", metavar="PATH", type=Path, help="Write the local snapshot to PATH.")
    parser.add_argument("--skip-sync", action="store_true", help="Only export; do not contact Drive.")
    args = parser.parse_args()

    if args.skip_sync and args.export is None:
        parser.error("--skip-sync requires --export")

    from idea_sync.main import configure_logging
    from idea_sync.config import get_settings

    configure_logging(get_settings())
    return asyncio.run(_run(args.export, args.skip_sync))


if __name__ == "__main__":
    raise SystemExit(main())
