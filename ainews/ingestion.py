from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

from .models import utc_now

log = logging.getLogger(__name__)

NEWS_TABLE = "news"
METADATA_TABLE = "daily_metadata"
RETENTION_DAYS = 7


def retention_cutoff(now: datetime, days: int = RETENTION_DAYS) -> datetime:
    return now - timedelta(days=days)


class IngestionWriter:
    """
    Writes one run's output to the store.

    Every write is best-effort: failures are logged and reported through
    the return value so one bad row never stops the rest of the run.
    """

    def __init__(self, client: Any):
        self.client = client
        self._metadata_written = False

    def insert_news(self, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            resp = self.client.table(NEWS_TABLE).insert(row).execute()
        except Exception as e:
            log.error("Error inserting news %r: %s", row.get("title"), e)
            return None
        stored = (resp.data or [row])[0]
        log.info("News inserted: %s", stored.get("title"))
        return stored

    def insert_daily_metadata(
        self,
        day: date,
        podcast_url: Optional[str],
        podcast_script: Optional[str],
        created_at: Optional[datetime] = None,
    ) -> Optional[Dict[str, Any]]:
        """Record the day's podcast. Only the first call per run writes."""
        if self._metadata_written:
            log.warning("Daily metadata for this run already written; ignoring %s", day)
            return None
        self._metadata_written = True

        row: Dict[str, Any] = {
            "date": day.isoformat(),
            "podcast_url": podcast_url,
            "podcast_script": podcast_script,
        }
        if created_at is not None:
            row["created_at"] = created_at.isoformat()
        try:
            resp = self.client.table(METADATA_TABLE).insert(row).execute()
        except Exception as e:
            log.error("Error inserting daily metadata for %s: %s", day, e)
            return None
        log.info("Daily metadata stored for %s", day)
        return (resp.data or [row])[0]

    def sweep(
        self,
        now: Optional[datetime] = None,
        days: int = RETENTION_DAYS,
        inclusive: bool = False,
    ) -> Dict[str, Optional[int]]:
        """
        Delete rows whose `created_at` predates now - `days`.

        The comparison is on the full UTC timestamp. With inclusive=False a
        row exactly `days` old survives; inclusive=True deletes it too.
        Returns deleted counts per table (None for a table that failed).
        """
        cutoff = retention_cutoff(now or utc_now(), days).isoformat()
        deleted: Dict[str, Optional[int]] = {}
        for table in (NEWS_TABLE, METADATA_TABLE):
            try:
                query = self.client.table(table).delete()
                query = query.lte("created_at", cutoff) if inclusive else query.lt("created_at", cutoff)
                resp = query.execute()
            except Exception as e:
                log.error("Error cleaning up %s older than %s: %s", table, cutoff, e)
                deleted[table] = None
                continue
            deleted[table] = len(resp.data or [])
            log.info("Deleted %s rows from %s older than %s", deleted[table], table, cutoff)
        return deleted
