from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .ingestion import METADATA_TABLE, NEWS_TABLE
from .models import DailyMetadata, Edition, NewsItem, utc_now

log = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "https://images.unsplash.com/photo-1677442136019-21780ecad995"
PLACEHOLDER_SOURCE = "https://github.com/simongpa11/AINews"


@dataclass
class NewspaperData:
    today: Edition
    archive: List[Edition] = field(default_factory=list)  # newest first, front page excluded


def _to_items(rows: List[Dict[str, Any]]) -> List[NewsItem]:
    items: List[NewsItem] = []
    for row in rows:
        try:
            items.append(NewsItem(**row))
        except ValidationError as e:
            log.warning("Skipping malformed news row %s: %s", row.get("id"), e)
    return items


def fetch_recent_news(client: Any, days: int, now: Optional[datetime] = None) -> List[NewsItem]:
    """News created in the last `days` days, oldest first. Errors yield an empty list."""
    since = ((now or utc_now()) - timedelta(days=days)).isoformat()
    try:
        resp = (
            client.table(NEWS_TABLE)
            .select("*")
            .gte("created_at", since)
            .order("created_at", desc=False)
            .order("relevance_score", desc=True)
            .execute()
        )
    except Exception as e:
        log.error("Error fetching news: %s", e)
        return []
    return _to_items(resp.data or [])


def group_by_date(items: List[NewsItem]) -> List[Edition]:
    """Editions in ascending date order; items inside a day by relevance (stable)."""
    grouped: Dict[date, List[NewsItem]] = {}
    for item in items:
        grouped.setdefault(item.edition_date, []).append(item)
    return [
        Edition(date=day, news=sorted(news, key=lambda n: n.relevance_score, reverse=True))
        for day, news in sorted(grouped.items())
    ]


def load_newspaper(
    client: Any,
    archive_days: int = 15,
    index_days: int = 7,
    now: Optional[datetime] = None,
) -> NewspaperData:
    """
    Front-page edition plus the archive, newest first.

    The front page is today's edition or, before today's run has landed,
    the latest edition of the last `index_days` days.
    """
    now = now or utc_now()
    editions = group_by_date(fetch_recent_news(client, archive_days, now))
    today = now.date()
    oldest_front = today - timedelta(days=index_days)

    front = next((e for e in reversed(editions) if e.date >= oldest_front), None)
    archive = [e for e in reversed(editions) if e is not front]
    return NewspaperData(today=front or Edition(date=today), archive=archive)


def fetch_daily_metadata(client: Any, day: date) -> Optional[DailyMetadata]:
    try:
        resp = (
            client.table(METADATA_TABLE)
            .select("*")
            .eq("date", day.isoformat())
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
    except Exception as e:
        log.error("Error fetching daily metadata for %s: %s", day, e)
        return None
    rows = resp.data or []
    if not rows:
        return None
    try:
        return DailyMetadata(**rows[0])
    except ValidationError as e:
        log.warning("Malformed daily metadata row for %s: %s", day, e)
        return None


def placeholder_edition(now: Optional[datetime] = None) -> Edition:
    """The welcome edition shown before the first run has filled the store."""
    now = now or utc_now()
    welcome = NewsItem(
        id="mock-1",
        title="Bienvenido a Noticias IA Diarias",
        summary=(
            "Esta es una demostración de Noticias IA Diarias. "
            "Una vez conectada la base de datos y ejecutada la actualización diaria, "
            "tus noticias aparecerán aquí.\n"
            "Prioridad: MEDIA"
        ),
        relevance_score=10,
        created_at=now,
        image_url=PLACEHOLDER_IMAGE,
        original_url=PLACEHOLDER_SOURCE,
    )
    return Edition(date=now.date(), news=[welcome])
