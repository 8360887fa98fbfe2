from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, MutableMapping, Optional

from postgrest.exceptions import APIError
from pydantic import ValidationError

from .models import Folder, SavedNews

log = logging.getLogger(__name__)

FOLDERS_TABLE = "folders"
SAVED_TABLE = "saved_news"

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


class SaveOutcome(str, enum.Enum):
    SAVED = "saved"
    ALREADY_SAVED = "already_saved"
    FAILED = "failed"


class SaveState(str, enum.Enum):
    UNSAVED = "unsaved"
    SAVING = "saving"
    SAVED = "saved"


class SaveTracker:
    """Per-item bookmark state: unsaved -> saving -> saved."""

    def __init__(self, state: SaveState = SaveState.UNSAVED):
        self.state = state

    def begin(self) -> bool:
        """Enter `saving` (the folder picker is open). False if already saving or saved."""
        if self.state is not SaveState.UNSAVED:
            return False
        self.state = SaveState.SAVING
        return True

    def cancel(self) -> None:
        if self.state is SaveState.SAVING:
            self.state = SaveState.UNSAVED

    def finish(self, outcome: SaveOutcome) -> SaveState:
        if outcome in (SaveOutcome.SAVED, SaveOutcome.ALREADY_SAVED):
            self.state = SaveState.SAVED
        else:
            self.state = SaveState.UNSAVED
        return self.state


@dataclass
class Library:
    folders: List[Folder] = field(default_factory=list)
    saved: List[SavedNews] = field(default_factory=list)

    @property
    def unsorted(self) -> List[SavedNews]:
        return [s for s in self.saved if not s.folder_id]

    def in_folder(self, folder_id: str) -> List[SavedNews]:
        return [s for s in self.saved if s.folder_id == folder_id]

    def counts(self) -> Dict[str, int]:
        return {f.id: len(self.in_folder(f.id)) for f in self.folders}


def sync_save_states(
    session: MutableMapping[str, Any],
    bookmarks: Optional["BookmarkService"],
    user_id: Optional[str],
) -> Dict[str, SaveState]:
    """
    Per-item save states kept in the session, rebuilt whenever the
    signed-in user changes (sign-in, sign-out or switching accounts).
    """
    if "save_state" not in session or session.get("save_state_user") != user_id:
        states: Dict[str, SaveState] = {}
        if user_id and bookmarks is not None:
            states = {news_id: SaveState.SAVED for news_id in bookmarks.saved_news_ids(user_id)}
        session["save_state"] = states
        session["save_state_user"] = user_id
    return session["save_state"]


def is_unique_violation(error: Exception) -> bool:
    return isinstance(error, APIError) and str(getattr(error, "code", "")) == UNIQUE_VIOLATION


class BookmarkService:
    def __init__(self, client: Any):
        self.client = client

    def list_folders(self, user_id: str) -> List[Folder]:
        try:
            resp = self.client.table(FOLDERS_TABLE).select("*").eq("user_id", user_id).order("name").execute()
        except Exception as e:
            log.error("Error fetching folders: %s", e)
            return []
        return [Folder(**row) for row in resp.data or []]

    def create_folder(self, user_id: str, name: str) -> Optional[Folder]:
        name = (name or "").strip()
        if not name:
            return None
        try:
            resp = self.client.table(FOLDERS_TABLE).insert({"name": name, "user_id": user_id}).execute()
        except Exception as e:
            log.error("Error creating folder %r: %s", name, e)
            return None
        rows = resp.data or []
        return Folder(**rows[0]) if rows else None

    def save(self, user_id: str, news_id: str, folder_id: Optional[str] = None) -> SaveOutcome:
        row: Dict[str, Any] = {"news_id": news_id, "user_id": user_id}
        if folder_id:
            row["folder_id"] = folder_id
        try:
            self.client.table(SAVED_TABLE).insert(row).execute()
        except Exception as e:
            if is_unique_violation(e):
                log.info("News %s already saved by %s", news_id, user_id)
                return SaveOutcome.ALREADY_SAVED
            log.error("Error saving news %s: %s", news_id, e)
            return SaveOutcome.FAILED
        return SaveOutcome.SAVED

    def saved_news_ids(self, user_id: str) -> List[str]:
        try:
            resp = self.client.table(SAVED_TABLE).select("news_id").eq("user_id", user_id).execute()
        except Exception as e:
            log.error("Error fetching saved news ids: %s", e)
            return []
        return [row["news_id"] for row in resp.data or []]

    def load_library(self, user_id: str) -> Library:
        folders = self.list_folders(user_id)
        try:
            resp = (
                self.client.table(SAVED_TABLE)
                .select("*, news(*)")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            log.error("Error fetching saved news: %s", e)
            return Library(folders=folders)

        saved: List[SavedNews] = []
        for row in resp.data or []:
            # The joined news row may be malformed; keep the clipping without it
            for candidate in (row, {**row, "news": None}):
                try:
                    saved.append(SavedNews(**candidate))
                    break
                except ValidationError as e:
                    log.warning("Saved news %s: %s", row.get("id"), e)
        return Library(folders=folders, saved=saved)
