#!/usr/bin/env python3
"""
Daily update: draft today's AI news, illustrate and narrate it, publish the
media and store the records, then purge anything past the retention window.

Run once per day from a scheduler:

    ainews-daily-update              # today's edition
    ainews-daily-update --date 2026-10-01   # backfill one date
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from openai import OpenAI
from supabase import create_client
from supabase.client import ClientOptions

from .generator import fetch_news_items
from .ingestion import IngestionWriter
from .media import ElevenLabsSpeech, MediaSynthesizer, OpenAISpeech, SpeechChain
from .models import GeneratedItem, utc_now
from .publisher import AssetPublisher, timestamped_filename
from .segmentation import segment_summary
from .settings import ConfigurationError, PipelineSettings, load_env_files, parse_target_date

log = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=fmt, datefmt="%H:%M:%S")
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ----------------------------
# Dependencies
# ----------------------------
@dataclass
class Pipeline:
    """Everything the run talks to, built once at process start."""

    openai: Any
    synthesizer: MediaSynthesizer
    publisher: AssetPublisher
    writer: IngestionWriter
    settings: PipelineSettings


def build_pipeline(settings: PipelineSettings) -> Pipeline:
    db = create_client(
        settings.supabase_url,
        settings.supabase_service_key,
        options=ClientOptions(
            postgrest_client_timeout=settings.request_timeout,
            storage_client_timeout=settings.request_timeout,
        ),
    )
    client = OpenAI(
        api_key=settings.openai_api_key,
        timeout=settings.request_timeout,
        max_retries=settings.openai_max_retries,
    )
    speech = SpeechChain(
        [
            ElevenLabsSpeech(
                settings.elevenlabs_api_key,
                settings.elevenlabs_voice_id,
                model_id=settings.elevenlabs_model_id,
                timeout=settings.request_timeout,
            ),
            OpenAISpeech(client, model=settings.openai_tts_model, voice=settings.openai_tts_voice),
        ]
    )
    synthesizer = MediaSynthesizer(
        client,
        speech,
        text_model=settings.openai_model,
        image_model=settings.openai_image_model,
        language=settings.language,
        timeout=settings.request_timeout,
    )
    log.info("Clients initialized: Supabase, OpenAI, ElevenLabs (+ OpenAI speech fallback)")
    return Pipeline(
        openai=client,
        synthesizer=synthesizer,
        publisher=AssetPublisher(db, bucket=settings.media_bucket),
        writer=IngestionWriter(db),
        settings=settings,
    )


# ----------------------------
# Run
# ----------------------------
@dataclass
class RunReport:
    generated: int = 0
    inserted: List[Dict[str, Any]] = field(default_factory=list)
    failed: int = 0
    skipped: int = 0
    podcast_url: Optional[str] = None
    swept: Dict[str, Optional[int]] = field(default_factory=dict)


def news_row(
    item: GeneratedItem,
    image_url: Optional[str],
    audio_url: Optional[str],
    created_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    original_url = item.source_url
    if not original_url:
        sources = segment_summary(item.summary).sources
        original_url = sources[0] if sources else None
    row: Dict[str, Any] = {
        "title": item.title,
        "summary": item.summary,
        "content": item.summary,
        "image_url": image_url,
        "audio_url": audio_url,
        "relevance_score": item.relevance_score,
        "original_url": original_url,
    }
    if created_at is not None:
        row["created_at"] = created_at.isoformat()
    return row


def process_item(pipeline: Pipeline, item: GeneratedItem, created_at: Optional[datetime]) -> Optional[Dict[str, Any]]:
    synth, publisher = pipeline.synthesizer, pipeline.publisher

    image_url = None
    image = synth.image_for(item)
    if image is not None:
        image_url = publisher.publish(image.data, timestamped_filename("news-image", "png"), "image/png")
        # Fall back to the temporary URL if upload fails
        image_url = image_url or image.temp_url

    audio_url = None
    audio = synth.audio_for(item)
    if audio:
        audio_url = publisher.publish(audio, timestamped_filename("news-audio", "mp3"), "audio/mpeg")

    return pipeline.writer.insert_news(news_row(item, image_url, audio_url, created_at))


def run_daily_update(
    pipeline: Pipeline,
    target_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> RunReport:
    settings = pipeline.settings
    now = now or utc_now()
    started = time.monotonic()
    report = RunReport()

    edition_date = target_date or now.date()
    # Backfilled rows are stamped on the requested date so they group into that edition
    created_at = datetime.combine(target_date, now.timetz()) if target_date else None
    if target_date and (now.date() - target_date).days > settings.retention_days:
        log.warning("Backfill date %s is outside the %s-day retention window", target_date, settings.retention_days)

    # 1. Draft the news
    log.info("Generating news for %s with %s...", edition_date, settings.openai_model)
    try:
        items = fetch_news_items(
            pipeline.openai,
            settings.openai_model,
            target_date=edition_date,
            language=settings.language,
            web_search=settings.enable_web_search,
        )
    except Exception as e:
        log.error("News generation failed: %s", e)
        items = []
    report.generated = len(items)

    if not items:
        log.warning("No news items generated for %s; nothing to ingest", edition_date)

    # 2. Media + ingestion, one item at a time
    ingested: List[GeneratedItem] = []
    for idx, item in enumerate(items):
        if time.monotonic() - started > settings.run_budget_seconds:
            report.skipped = len(items) - idx
            log.warning("Run budget of %ss exhausted; skipping %s remaining items", settings.run_budget_seconds, report.skipped)
            break
        log.info("[%s/%s] %s (relevance %s)", idx + 1, len(items), item.title, item.relevance_score)
        try:
            stored = process_item(pipeline, item, created_at)
        except Exception as e:
            log.error("Processing %r failed: %s", item.title, e)
            stored = None
        if stored is None:
            report.failed += 1
            continue
        report.inserted.append(stored)
        ingested.append(item)

    # 3. Daily podcast over what made it in
    if ingested:
        log.info("Generating daily podcast...")
        script, audio = pipeline.synthesizer.podcast(ingested)
        if audio:
            report.podcast_url = pipeline.publisher.publish(
                audio, timestamped_filename("podcast", "mp3", separator="_"), "audio/mpeg"
            )
        if script:
            pipeline.writer.insert_daily_metadata(edition_date, report.podcast_url, script, created_at)

    # 4. Retention sweep
    report.swept = pipeline.writer.sweep(now=now, days=settings.retention_days)

    log.info(
        "Daily update done: %s generated, %s inserted, %s failed, %s skipped, podcast %s",
        report.generated,
        len(report.inserted),
        report.failed,
        report.skipped,
        "yes" if report.podcast_url else "no",
    )
    return report


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate and store today's AI news edition.")
    parser.add_argument("--date", help="Edition date to (re)generate, YYYY-MM-DD (overrides TARGET_DATE)")
    parser.add_argument("--env-file", action="append", default=None, help="dotenv file(s) to load")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    load_env_files(*(args.env_file or ()))
    try:
        settings = PipelineSettings.from_env()
        target_date = parse_target_date(args.date) or settings.target_date
    except ConfigurationError as e:
        setup_logging()
        log.error("%s", e)
        return 1

    setup_logging(settings.log_level)
    log.info("Starting daily update...")
    pipeline = build_pipeline(settings)
    run_daily_update(pipeline, target_date=target_date)
    return 0


if __name__ == "__main__":
    sys.exit(main())
