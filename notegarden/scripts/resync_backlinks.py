#!/usr/bin/env python3
"""Re-run backlink synchronization for stored notes.

Use after a reported sync failure, or to rebuild the graph from scratch.

Usage:
  python -m notegarden.scripts.resync_backlinks --owner <owner-id>
  python -m notegarden.scripts.resync_backlinks --owner <owner-id> --json
"""
from __future__ import annotations

import argparse
import asyncio
import json

from notegarden.db import connection, migrations
from notegarden.services.backlink_sync import BacklinkSynchronizer


async def _run(owner_id: str, as_json: bool) -> int:
    db = await connection.get_connection()
    try:
        await migrations.run_migrations(db)
        report = await BacklinkSynchronizer(db).resync_owner(owner_id)
    finally:
        await connection.close_connection()

    if as_json:
        print(json.dumps(report.model_dump(), indent=2))
    else:
        for status in report.results:
            line = f"{status.noteId}: {status.status} inserted={len(status.insertedLinks)}"
            if status.unresolved:
                line += f" unresolved={','.join(status.unresolved)}"
            if status.failedLinks:
                line += f" failed={','.join(edge.target_note_id for edge in status.failedLinks)}"
            if status.stage:
                line += f" stage={status.stage}"
            print(line)
        print(f"{owner_id}: {report.succeeded}/{report.total} notes synchronized")

    return 0 if report.succeeded == report.total else 1


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--owner", required=True, help="Owner whose notes should be resynchronized")
    parser.add_argument("--json", action="store_true", help="Print the full report as JSON")
    args = parser.parse_args()
    return asyncio.run(_run(args.owner, args.json))


if __name__ == "__main__":
    raise SystemExit(main())
