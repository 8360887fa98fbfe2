"""
Environment configuration for the batch pipeline and the front-end.

Values come from the process environment, optionally seeded from
`.env.local` / `.env` (the same files the web app reads). Required
credentials are checked up front so the daily job can exit before it
spends anything on API calls.
"""

from __future__ import annotations

import os
from datetime import date
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ConfigurationError(RuntimeError):
    """One or more required environment variables are missing or invalid."""

    def __init__(self, missing: List[str], detail: str = ""):
        self.missing = missing
        msg = "Missing required configuration: " + ", ".join(missing) if missing else detail
        super().__init__(msg)


def load_env_files(*paths: str) -> None:
    """Load dotenv files without overriding variables already set."""
    for path in paths or (".env.local", ".env"):
        if os.path.exists(path):
            load_dotenv(path, override=False)


def first_env(env: Dict[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value:
            return value.strip()
    return None


def _missing(values: Dict[str, Optional[str]]) -> List[str]:
    return [name for name, value in values.items() if not value]


def _int(env: Dict[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError([], detail=f"{name} must be an integer, got {raw!r}")


def parse_target_date(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        raise ConfigurationError([], detail=f"Target date must be YYYY-MM-DD, got {raw!r}")


# ----------------------------
# Batch pipeline
# ----------------------------
class PipelineSettings(BaseModel):
    supabase_url: str
    supabase_service_key: str
    openai_api_key: str
    elevenlabs_api_key: str

    openai_model: str = "gpt-4o"
    openai_image_model: str = "dall-e-3"
    openai_tts_model: str = "tts-1"
    openai_tts_voice: str = "alloy"
    # "Dani" on ElevenLabs; override per account
    elevenlabs_voice_id: str = "7QQzpAyzlKTVrRzQJmTE"
    elevenlabs_model_id: str = "eleven_multilingual_v2"

    language: str = Field("es", description="Language the newspaper is written in")
    media_bucket: str = "media"
    retention_days: int = 7
    request_timeout: int = 60
    openai_max_retries: int = 2
    run_budget_seconds: int = 1200
    enable_web_search: bool = True
    target_date: Optional[date] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None) -> "PipelineSettings":
        env = dict(os.environ if env is None else env)
        required = {
            "SUPABASE_URL": first_env(env, "SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
            "SUPABASE_SERVICE_ROLE_KEY": first_env(env, "SUPABASE_SERVICE_ROLE_KEY"),
            "OPENAI_API_KEY": first_env(env, "OPENAI_API_KEY"),
            "ELEVENLABS_API_KEY": first_env(env, "ELEVENLABS_API_KEY"),
        }
        missing = _missing(required)
        if missing:
            raise ConfigurationError(missing)

        optional = {
            "openai_model": first_env(env, "OPENAI_MODEL"),
            "openai_image_model": first_env(env, "OPENAI_IMAGE_MODEL"),
            "openai_tts_model": first_env(env, "OPENAI_TTS_MODEL"),
            "openai_tts_voice": first_env(env, "OPENAI_TTS_VOICE"),
            "elevenlabs_voice_id": first_env(env, "ELEVENLABS_VOICE_ID"),
            "elevenlabs_model_id": first_env(env, "ELEVENLABS_MODEL_ID"),
            "language": first_env(env, "NEWS_LANGUAGE"),
            "media_bucket": first_env(env, "MEDIA_BUCKET"),
            "log_level": first_env(env, "LOG_LEVEL"),
        }
        return cls(
            supabase_url=required["SUPABASE_URL"],
            supabase_service_key=required["SUPABASE_SERVICE_ROLE_KEY"],
            openai_api_key=required["OPENAI_API_KEY"],
            elevenlabs_api_key=required["ELEVENLABS_API_KEY"],
            retention_days=_int(env, "RETENTION_DAYS", 7),
            request_timeout=_int(env, "REQUEST_TIMEOUT", 60),
            openai_max_retries=_int(env, "OPENAI_MAX_RETRIES", 2),
            run_budget_seconds=_int(env, "RUN_BUDGET_SECONDS", 1200),
            enable_web_search=(env.get("ENABLE_WEB_SEARCH", "1").lower() not in ("0", "false", "no")),
            target_date=parse_target_date(env.get("TARGET_DATE")),
            **{k: v for k, v in optional.items() if v},
        )


# ----------------------------
# Front-end
# ----------------------------
class FrontendSettings(BaseModel):
    supabase_url: str
    supabase_anon_key: str
    # Enables on-demand speech for items stored without audio
    openai_api_key: Optional[str] = None
    openai_tts_model: str = "tts-1"
    openai_tts_voice: str = "alloy"
    archive_days: int = 15
    index_days: int = 7
    request_timeout: int = 30

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None) -> "FrontendSettings":
        env = dict(os.environ if env is None else env)
        required = {
            "SUPABASE_URL": first_env(env, "SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
            "SUPABASE_ANON_KEY": first_env(env, "SUPABASE_ANON_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY"),
        }
        missing = _missing(required)
        if missing:
            raise ConfigurationError(missing)

        extra = {
            "openai_tts_model": first_env(env, "OPENAI_TTS_MODEL"),
            "openai_tts_voice": first_env(env, "OPENAI_TTS_VOICE"),
        }
        return cls(
            supabase_url=required["SUPABASE_URL"],
            supabase_anon_key=required["SUPABASE_ANON_KEY"],
            openai_api_key=first_env(env, "OPENAI_API_KEY"),
            request_timeout=_int(env, "REQUEST_TIMEOUT", 30),
            **{k: v for k, v in extra.items() if v},
        )
