"""Tests for folders, saved clippings and the save button state."""

import pytest
from postgrest.exceptions import APIError

from ainews.bookmarks import (
    FOLDERS_TABLE,
    SAVED_TABLE,
    BookmarkService,
    SaveOutcome,
    SaveState,
    SaveTracker,
    is_unique_violation,
    sync_save_states,
)
from ainews.ingestion import NEWS_TABLE

USER = "user-1"


class TestSave:
    def test_save_then_duplicate(self, db):
        """Saving the same item twice reports already-saved, not an error."""
        service = BookmarkService(db)
        assert service.save(USER, "news-1") is SaveOutcome.SAVED
        assert service.save(USER, "news-1", folder_id="f-1") is SaveOutcome.ALREADY_SAVED
        assert len(db.tables[SAVED_TABLE]) == 1

    def test_other_users_can_save_same_item(self, db):
        service = BookmarkService(db)
        assert service.save(USER, "news-1") is SaveOutcome.SAVED
        assert service.save("user-2", "news-1") is SaveOutcome.SAVED

    def test_other_errors_fail(self, db):
        db.fail(SAVED_TABLE, "insert")
        assert BookmarkService(db).save(USER, "news-1") is SaveOutcome.FAILED

    def test_folder_id_only_when_given(self, db):
        service = BookmarkService(db)
        service.save(USER, "news-1")
        service.save(USER, "news-2", folder_id="f-1")
        rows = db.tables[SAVED_TABLE]
        assert "folder_id" not in rows[0]
        assert rows[1]["folder_id"] == "f-1"

    def test_saved_news_ids(self, db):
        service = BookmarkService(db)
        service.save(USER, "news-1")
        service.save("user-2", "news-2")
        assert service.saved_news_ids(USER) == ["news-1"]

    def test_unique_violation_detection(self, db):
        service = BookmarkService(db)
        service.save(USER, "news-1")
        with pytest.raises(APIError) as excinfo:
            db.table(SAVED_TABLE).insert({"user_id": USER, "news_id": "news-1"}).execute()
        assert is_unique_violation(excinfo.value)
        assert not is_unique_violation(RuntimeError("23505"))


class TestSaveTracker:
    def test_happy_path(self):
        tracker = SaveTracker()
        assert tracker.begin() is True
        assert tracker.state is SaveState.SAVING
        assert tracker.finish(SaveOutcome.SAVED) is SaveState.SAVED

    def test_already_saved_counts_as_saved(self):
        tracker = SaveTracker()
        tracker.begin()
        assert tracker.finish(SaveOutcome.ALREADY_SAVED) is SaveState.SAVED

    def test_failure_returns_to_unsaved(self):
        tracker = SaveTracker()
        tracker.begin()
        assert tracker.finish(SaveOutcome.FAILED) is SaveState.UNSAVED

    def test_cancel(self):
        tracker = SaveTracker()
        tracker.begin()
        tracker.cancel()
        assert tracker.state is SaveState.UNSAVED

    def test_cannot_begin_twice(self):
        tracker = SaveTracker()
        tracker.begin()
        assert tracker.begin() is False
        tracker.finish(SaveOutcome.SAVED)
        assert tracker.begin() is False


class TestFolders:
    def test_create_and_list(self, db):
        service = BookmarkService(db)
        b = service.create_folder(USER, "  Research ")
        a = service.create_folder(USER, "Agents")
        service.create_folder("user-2", "Private")
        assert b.name == "Research"
        assert [f.name for f in service.list_folders(USER)] == ["Agents", "Research"]
        assert a.user_id == USER

    def test_blank_name_rejected(self, db):
        assert BookmarkService(db).create_folder(USER, "   ") is None
        assert db.tables.get(FOLDERS_TABLE, []) == []

    def test_list_error(self, db):
        db.fail(FOLDERS_TABLE, "select")
        assert BookmarkService(db).list_folders(USER) == []


class TestLibrary:
    def test_folders_and_unsorted(self, db, now):
        db.tables[NEWS_TABLE] = [
            {"id": "n1", "title": "One", "summary": "S.", "created_at": now.isoformat()},
            {"id": "n2", "title": "Two", "summary": "S.", "created_at": now.isoformat()},
        ]
        service = BookmarkService(db)
        folder = service.create_folder(USER, "Agents")
        service.save(USER, "n1", folder_id=folder.id)
        service.save(USER, "n2")

        library = service.load_library(USER)
        assert [s.news.title for s in library.in_folder(folder.id)] == ["One"]
        assert [s.news_id for s in library.unsorted] == ["n2"]
        assert library.counts() == {folder.id: 1}

    def test_missing_news_row_keeps_clipping(self, db):
        service = BookmarkService(db)
        service.save(USER, "gone")
        (clip,) = service.load_library(USER).saved
        assert clip.news is None

    def test_malformed_news_row_keeps_clipping(self, db):
        db.tables[NEWS_TABLE] = [{"id": "n1", "title": "No date"}]
        service = BookmarkService(db)
        service.save(USER, "n1")
        (clip,) = service.load_library(USER).saved
        assert clip.news is None
        assert clip.news_id == "n1"

    def test_fetch_error_returns_folders_only(self, db):
        service = BookmarkService(db)
        service.create_folder(USER, "Agents")
        db.fail(SAVED_TABLE, "select")
        library = service.load_library(USER)
        assert [f.name for f in library.folders] == ["Agents"]
        assert library.saved == []


class TestSessionSaveStates:
    def test_reloaded_when_reader_signs_in(self, db):
        """Clippings saved in an earlier visit show as saved once the reader signs in mid-session."""
        service = BookmarkService(db)
        service.save(USER, "news-1")
        session = {}

        assert sync_save_states(session, service, None) == {}
        session["save_state"]["news-2"] = SaveState.UNSAVED

        states = sync_save_states(session, service, USER)
        assert states == {"news-1": SaveState.SAVED}

    def test_kept_while_user_unchanged(self, db):
        service = BookmarkService(db)
        session = {}
        sync_save_states(session, service, USER)
        session["save_state"]["news-9"] = SaveState.SAVING
        service.save(USER, "news-1")
        assert sync_save_states(session, service, USER) == {"news-9": SaveState.SAVING}

    def test_switching_accounts(self, db):
        service = BookmarkService(db)
        service.save(USER, "news-1")
        service.save("user-2", "news-2")
        session = {}
        sync_save_states(session, service, USER)
        assert sync_save_states(session, service, "user-2") == {"news-2": SaveState.SAVED}
        assert sync_save_states(session, service, None) == {}
