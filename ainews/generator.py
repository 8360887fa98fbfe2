from __future__ import annotations

import json
import logging
import re
import unicodedata
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from openai import OpenAI
from pydantic import ValidationError

from .models import GeneratedItem

log = logging.getLogger(__name__)

MIN_ITEMS = 3
MAX_ITEMS = 8
TITLE_MAX_CHARS = 90

LANGUAGE_NAMES = {"es": "Spanish", "en": "English"}


class ModelOutputError(RuntimeError):
    """The model reply had no usable text or no JSON object in it."""


# ----------------------------
# Text normalization helper
# ----------------------------
def normalize_text(s: str) -> str:
    """Normalize weird unicode characters into clean, uniform text (accents are kept)."""
    if not s:
        return s

    s = unicodedata.normalize("NFKC", s)

    # Curly quotes -> straight quotes
    s = s.replace("‘", "'").replace("’", "'")
    s = s.replace("“", '"').replace("”", '"')

    # Long/short dashes -> hyphens
    s = s.replace("—", "-").replace("–", "-")

    s = s.replace("\xa0", " ")

    # Zero-width characters
    s = re.sub(r"[\u200b\u200c\u200d\u2060]", "", s)

    # Collapse runs of spaces but keep line breaks; the summary markers sit on their own lines
    s = re.sub(r"[ \t]+", " ", s)
    s = re.sub(r"\n{3,}", "\n\n", s)

    return s.strip()


# ----------------------------
# Prompts
# ----------------------------
SYSTEM_INSTRUCTIONS = (
    """
You are the editor of "AI News Daily", a short daily newspaper about artificial intelligence
read by curious professionals who are not experts.

Topic taxonomy
--------------
• Model and product launches (new models, major updates, open-weight releases).
• Research breakthroughs with practical consequences.
• Regulation, policy, lawsuits and standards.
• Funding rounds, acquisitions and company moves.
• Tools people can try today.
• Safety, security incidents and outages.

Editorial rules
---------------
• Only cover news published in the 24–48 hours before the edition date.
• Return between 3 and 8 items, most important first.
• Never return an empty list. On a quiet day pick the 3–4 most relevant developments
  of the window, even if they are incremental.
• De-duplicate near-identical coverage of the same story.
    """
).strip()

SUMMARY_GRAMMAR = (
    """
Each `summary` is 3–6 short sentences of plain text (no markdown) explaining what happened
and why it matters, followed by these markers, each on its own line:

Priority: LOW | MED | HIGH | ALERT
Recommendation: one concrete thing the reader can do about it
Source: https://first-source.example, https://second-source.example

When writing in Spanish use the labels `Prioridad:` (BAJA | MEDIA | ALTA | ALERTA),
`Recomendación:` and `Fuente:` instead.
    """
).strip()

NEWS_SCHEMA = {
    "type": "object",
    "properties": {
        "news_items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "summary": {"type": "string"},
                    "relevance_score": {"type": "integer", "minimum": 1, "maximum": 10},
                    "source_url": {"type": "string", "format": "uri"},
                },
                "required": ["title", "summary", "relevance_score", "source_url"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["news_items"],
    "additionalProperties": False,
}


def build_news_prompt(target_date: date, language: str = "es") -> str:
    window_start = target_date - timedelta(days=2)
    lang_name = LANGUAGE_NAMES.get(language, language)
    return (
        f"Edition date: {target_date.isoformat()}.\n"
        f"Find the {MIN_ITEMS}–{MAX_ITEMS} most relevant AI news stories published between "
        f"{window_start.isoformat()} and {target_date.isoformat()} (prefer the last 24 hours).\n"
        f"Write titles and summaries in {lang_name}. Titles must be at most {TITLE_MAX_CHARS} characters.\n"
        "Score `relevance_score` from 1 (minor) to 10 (everyone in tech is talking about it).\n\n"
        + SUMMARY_GRAMMAR
        + "\n\nOUTPUT FORMAT: Return ONLY a JSON object matching this schema (no markdown, no prose).\n\n"
        + json.dumps(NEWS_SCHEMA)
    )


# ----------------------------
# Response parsing
# ----------------------------
def response_text(resp: Any, what: str = "completion") -> str:
    """Pull the text out of a Responses API payload."""
    content = getattr(resp, "output_text", None)
    if not content:
        try:
            content = resp.output[0].content[0].text
        except (AttributeError, IndexError, TypeError):
            raise ModelOutputError(f"Unexpected Responses payload when generating {what}.")
    if not content:
        raise ModelOutputError(f"Empty model reply when generating {what}.")
    return content


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Find the JSON object in a model reply.

    Handles a bare object, an object inside a ```json fence and an object
    surrounded by prose. A bare top-level array is wrapped as `news_items`.
    """
    fenced = re.search(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL)
    candidates = [fenced.group(1)] if fenced else []
    candidates.append(text.strip())

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
        if isinstance(data, list):
            return {"news_items": data}

    raise ModelOutputError(f"Model did not return a JSON object: {text[:200]!r}")


def parse_news_items(data: Dict[str, Any]) -> List[GeneratedItem]:
    raw_items = data.get("news_items")
    if raw_items is None:
        log.warning("Model reply has no news_items array; treating as empty")
        return []
    if not isinstance(raw_items, list):
        log.warning("news_items is %s, not a list; treating as empty", type(raw_items).__name__)
        return []

    items: List[GeneratedItem] = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            log.warning("Skipping news item #%s: not an object", idx)
            continue
        # Older prompts used `url` / `original_url`
        raw = dict(raw)
        raw.setdefault("source_url", raw.get("url") or raw.get("original_url"))
        try:
            item = GeneratedItem(**raw)
        except (ValidationError, TypeError, ValueError) as e:
            log.warning("Skipping news item #%s: %s", idx, e)
            continue
        items.append(
            item.model_copy(
                update={"title": normalize_text(item.title), "summary": normalize_text(item.summary)}
            )
        )
    return items


def sort_by_relevance(items: List[GeneratedItem]) -> List[GeneratedItem]:
    """Highest score first; equal scores keep the model's order (sorted() is stable)."""
    return sorted(items, key=lambda i: i.relevance_score, reverse=True)


# ----------------------------
# Core logic: ask the model for today's news
# ----------------------------
def fetch_news_items(
    client: OpenAI,
    model: str,
    target_date: Optional[date] = None,
    language: str = "es",
    web_search: bool = True,
) -> List[GeneratedItem]:
    """Call the Responses API (with web_search when enabled) and parse the JSON news list."""
    target_date = target_date or datetime.now(timezone.utc).date()
    user_text = build_news_prompt(target_date, language)

    tools_primary = [{"type": "web_search", "search_context_size": "medium"}]
    tools_fallback = [{"type": "web_search"}]

    def _make_call(tools_payload):
        kwargs: Dict[str, Any] = {
            "model": model,
            "input": [
                {"role": "system", "content": SYSTEM_INSTRUCTIONS},
                {"role": "user", "content": user_text},
            ],
            "text": {"format": {"type": "text"}},
            "store": False,
        }
        if tools_payload:
            kwargs["tools"] = tools_payload
        return client.responses.create(**kwargs)

    if not web_search:
        resp = _make_call(None)
    else:
        try:
            resp = _make_call(tools_primary)
        except Exception as e:
            msg = str(e).lower()
            if (
                "unknown parameter" in msg
                or "unsupported" in msg
                or "invalid_request_error" in msg
                or "bad request" in msg
            ):
                log.info("Retrying news request with plain web_search tool: %s", e)
                resp = _make_call(tools_fallback)
            else:
                raise

    content = response_text(resp, "news items")
    items = parse_news_items(extract_json_object(content))
    log.info("Model returned %s usable news items for %s", len(items), target_date)
    return sort_by_relevance(items)
