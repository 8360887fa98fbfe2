"""Tests for environment configuration and the clear-db maintenance script."""

import os
from datetime import date

import pytest

from ainews import clear_db
from ainews.clear_db import clear_tables
from ainews.ingestion import METADATA_TABLE, NEWS_TABLE
from ainews.settings import ConfigurationError, FrontendSettings, PipelineSettings, load_env_files

BASE_ENV = {
    "SUPABASE_URL": "https://p.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "service",
    "OPENAI_API_KEY": "sk-test",
    "ELEVENLABS_API_KEY": "el-test",
}


class TestPipelineSettings:
    def test_defaults(self):
        settings = PipelineSettings.from_env(BASE_ENV)
        assert settings.openai_model == "gpt-4o"
        assert settings.elevenlabs_voice_id == "7QQzpAyzlKTVrRzQJmTE"
        assert settings.media_bucket == "media"
        assert settings.retention_days == 7
        assert settings.language == "es"
        assert settings.enable_web_search is True
        assert settings.target_date is None

    def test_missing_variables_are_all_reported(self):
        with pytest.raises(ConfigurationError) as excinfo:
            PipelineSettings.from_env({"SUPABASE_URL": "https://p.supabase.co"})
        assert excinfo.value.missing == ["SUPABASE_SERVICE_ROLE_KEY", "OPENAI_API_KEY", "ELEVENLABS_API_KEY"]

    def test_public_url_alias(self):
        env = dict(BASE_ENV)
        env["NEXT_PUBLIC_SUPABASE_URL"] = env.pop("SUPABASE_URL")
        assert PipelineSettings.from_env(env).supabase_url == "https://p.supabase.co"

    def test_overrides(self):
        env = dict(
            BASE_ENV,
            OPENAI_MODEL="gpt-4.1",
            RETENTION_DAYS="10",
            ENABLE_WEB_SEARCH="false",
            TARGET_DATE="2026-10-01",
            NEWS_LANGUAGE="en",
        )
        settings = PipelineSettings.from_env(env)
        assert settings.openai_model == "gpt-4.1"
        assert settings.retention_days == 10
        assert settings.enable_web_search is False
        assert settings.target_date == date(2026, 10, 1)
        assert settings.language == "en"

    def test_bad_integer(self):
        with pytest.raises(ConfigurationError, match="RETENTION_DAYS"):
            PipelineSettings.from_env(dict(BASE_ENV, RETENTION_DAYS="a week"))

    def test_bad_target_date(self):
        with pytest.raises(ConfigurationError):
            PipelineSettings.from_env(dict(BASE_ENV, TARGET_DATE="yesterday"))


class TestFrontendSettings:
    def test_anon_key_aliases(self):
        settings = FrontendSettings.from_env(
            {"NEXT_PUBLIC_SUPABASE_URL": "https://p.supabase.co", "NEXT_PUBLIC_SUPABASE_ANON_KEY": "anon"}
        )
        assert settings.supabase_anon_key == "anon"
        assert settings.openai_api_key is None
        assert settings.archive_days == 15

    def test_missing(self):
        with pytest.raises(ConfigurationError) as excinfo:
            FrontendSettings.from_env({})
        assert excinfo.value.missing == ["SUPABASE_URL", "SUPABASE_ANON_KEY"]


class TestEnvFiles:
    def test_does_not_override_process_env(self, monkeypatch, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("AINEWS_TEST_A=from-file\nAINEWS_TEST_B=from-file\n")
        monkeypatch.setenv("AINEWS_TEST_A", "from-env")
        monkeypatch.delenv("AINEWS_TEST_B", raising=False)

        load_env_files(str(env_file))

        assert os.environ["AINEWS_TEST_A"] == "from-env"
        assert os.environ["AINEWS_TEST_B"] == "from-file"
        monkeypatch.delenv("AINEWS_TEST_B")


class TestClearDb:
    def test_clears_both_tables(self, db, now):
        db.tables[NEWS_TABLE] = [{"id": "a", "created_at": now.isoformat()}, {"id": "b", "created_at": now.isoformat()}]
        db.tables[METADATA_TABLE] = [{"id": 1, "created_at": now.isoformat()}]
        assert clear_tables(db) == {NEWS_TABLE: 2, METADATA_TABLE: 1}
        assert db.tables[NEWS_TABLE] == []
        assert db.tables[METADATA_TABLE] == []

    def test_one_failure_does_not_stop_the_other(self, db):
        db.tables[METADATA_TABLE] = [{"id": 1}]
        db.fail(NEWS_TABLE, "delete")
        assert clear_tables(db) == {NEWS_TABLE: None, METADATA_TABLE: 1}

    def test_main_without_credentials(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in ("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"):
            monkeypatch.delenv(name, raising=False)
        assert clear_db.main() == 1

    def test_main_reports_partial_failure(self, monkeypatch, tmp_path, db):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("SUPABASE_URL", "https://p.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service")
        db.fail(METADATA_TABLE, "delete")
        monkeypatch.setattr(clear_db, "create_client", lambda url, key: db)
        assert clear_db.main() == 1
