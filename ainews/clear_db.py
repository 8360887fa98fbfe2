"""Empty the `news` and `daily_metadata` tables (service-role key required)."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Dict, Optional

from supabase import create_client

from .ingestion import METADATA_TABLE, NEWS_TABLE
from .settings import first_env, load_env_files

log = logging.getLogger(__name__)


def clear_tables(client: Any) -> Dict[str, Optional[int]]:
    """Delete every row from both tables; a failure on one does not stop the other."""
    cleared: Dict[str, Optional[int]] = {}
    for table in (NEWS_TABLE, METADATA_TABLE):
        log.info("Clearing %s table...", table)
        try:
            # PostgREST refuses an unfiltered delete
            resp = client.table(table).delete().not_.is_("id", "null").execute()
        except Exception as e:
            log.error("Error clearing %s: %s", table, e)
            cleared[table] = None
            continue
        cleared[table] = len(resp.data or [])
    return cleared


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")
    load_env_files()
    url = first_env(dict(os.environ), "SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL")
    key = first_env(dict(os.environ), "SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        log.error("Missing Supabase credentials")
        return 1

    cleared = clear_tables(create_client(url, key))
    if any(count is None for count in cleared.values()):
        return 1
    log.info("Database cleared! %s", cleared)
    return 0


if __name__ == "__main__":
    sys.exit(main())
