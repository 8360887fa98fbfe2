import math
from datetime import date, datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ----------------------------
# Model output (before ingestion)
# ----------------------------
class GeneratedItem(BaseModel):
    title: str = Field(..., min_length=1, description="Catchy headline, at most ~90 characters")
    summary: str = Field(
        ...,
        min_length=1,
        description="3–6 sentences with embedded Priority / Recommendation / Source markers",
    )
    relevance_score: int = Field(..., description="How much this matters today, 1 (minor) to 10 (critical)")
    source_url: Optional[str] = Field(None, description="Canonical article URL")

    @field_validator("relevance_score", mode="before")
    @classmethod
    def _clamp_score(cls, v):
        # Models occasionally answer "8" or 8.5; anything non-numeric fails validation
        score = float(v)
        if not math.isfinite(score):
            raise ValueError(f"relevance_score must be a finite number, got {v!r}")
        return max(1, min(10, int(round(score))))

    # Before validation so whitespace-only text fails min_length
    @field_validator("title", "summary", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


# ----------------------------
# Stored records
# ----------------------------
class NewsItem(BaseModel):
    id: str
    title: str
    summary: str
    content: Optional[str] = None
    image_url: Optional[str] = None
    audio_url: Optional[str] = None
    relevance_score: int = 5
    original_url: Optional[str] = None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def edition_date(self) -> date:
        return self.created_at.date()


class DailyMetadata(BaseModel):
    id: Optional[int] = None
    date: date
    podcast_url: Optional[str] = None
    podcast_script: Optional[str] = None
    created_at: Optional[datetime] = None


class Folder(BaseModel):
    id: str
    name: str
    user_id: str
    created_at: Optional[datetime] = None


class SavedNews(BaseModel):
    id: str
    news_id: str
    folder_id: Optional[str] = None
    user_id: str
    created_at: Optional[datetime] = None
    news: Optional[NewsItem] = None  # joined via select("*, news(*)")


class Edition(BaseModel):
    """All news items created on one calendar date (UTC)."""

    date: date
    news: List[NewsItem] = Field(default_factory=list)
