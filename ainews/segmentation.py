"""
Split a stored news summary into the pieces an article page displays.

Summary grammar
---------------
The generator asks the model to embed up to three labelled markers in the
free-text summary. Labels are accepted in English or Spanish, in any order,
case-insensitively, each followed by a colon:

    Priority: | Prioridad:            LOW | MED | MEDIUM | HIGH | ALERT
                                      BAJA | MEDIA | ALTA | ALERTA
    Recommendation: | Recommended action: |
    Recomendación: | Recomendacion: | Acción recomendada:
                                      free text up to the next priority or
                                      source label (or end of text)
    Source: | Sources: | Fuente: | Fuentes:
                                      one or more comma-separated http(s) URLs;
                                      a label with no URL is dropped from the body

Everything else is the narrative body. The first two sentences of the body
are the lead, the rest is the analysis.

`segment_summary` is a pure function of its inputs: pages call it on every
render and nothing is persisted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

LOW, MED, HIGH, ALERT = "LOW", "MED", "HIGH", "ALERT"
PRIORITY_LEVELS = (LOW, MED, HIGH, ALERT)
DEFAULT_PRIORITY = MED

# Localized level name -> canonical level
LEVEL_ALIASES = {
    "LOW": LOW,
    "BAJA": LOW,
    "MED": MED,
    "MEDIUM": MED,
    "MEDIA": MED,
    "HIGH": HIGH,
    "ALTA": HIGH,
    "ALERT": ALERT,
    "ALERTA": ALERT,
}

_PRIORITY_LABEL = r"\b(?:priority|prioridad)\s*:"
_SOURCE_LABEL = r"\b(?:sources?|fuentes?)\s*:"
_RECOMMENDATION_LABEL = (
    r"\b(?:recommended\s+action|recommendation|recomendaci[oó]n|acci[oó]n\s+recomendada)\s*:"
)

_PRIORITY_RE = re.compile(
    # Longest alternatives first so ALERTA is not read as ALERT + "A"
    _PRIORITY_LABEL + r"\s*\**\s*(ALERTA|ALERT|MEDIUM|MEDIA|MED|BAJA|LOW|ALTA|HIGH)\b\**",
    re.IGNORECASE,
)
_RECOMMENDATION_RE = re.compile(
    _RECOMMENDATION_LABEL + r"\s*(.*?)\s*(?=" + _PRIORITY_LABEL + "|" + _SOURCE_LABEL + r"|\Z)",
    re.IGNORECASE | re.DOTALL,
)
_URL = r"https?://[^\s,]+"
_SOURCE_RE = re.compile(
    _SOURCE_LABEL + r"\s*(" + _URL + r"(?:\s*,\s*" + _URL + r")*)",
    re.IGNORECASE,
)
# A source label naming a publication instead of a link; runs to the end of the line or the next label
_BARE_SOURCE_RE = re.compile(
    _SOURCE_LABEL + r"[^\n]*?(?=" + _PRIORITY_LABEL + "|" + _RECOMMENDATION_LABEL + r"|\n|\Z)",
    re.IGNORECASE,
)
_SENTENCE_RE = re.compile(r"[^.!?]+(?:[.!?]+|$)")


@dataclass(frozen=True)
class Segments:
    priority: str = DEFAULT_PRIORITY
    recommendation: Optional[str] = None
    sources: List[str] = field(default_factory=list)
    body: str = ""
    lead: str = ""
    analysis: str = ""


def priority_for_score(score: int) -> str:
    """Map a 1–10 relevance score onto the four priority bands."""
    if score >= 9:
        return ALERT
    if score >= 7:
        return HIGH
    if score >= 4:
        return MED
    return LOW


def _clean_url(url: str) -> str:
    # Trailing punctuation belongs to the sentence, not the URL
    return url.rstrip(".;:)]}>\"'")


def extract_priority(text: str) -> Tuple[str, Optional[Tuple[int, int]]]:
    match = _PRIORITY_RE.search(text)
    if not match:
        return DEFAULT_PRIORITY, None
    return LEVEL_ALIASES[match.group(1).upper()], match.span()


def extract_recommendation(text: str) -> Tuple[Optional[str], Optional[Tuple[int, int]]]:
    match = _RECOMMENDATION_RE.search(text)
    if not match:
        return None, None
    value = match.group(1).strip().rstrip("|;-–").strip()
    return (value or None), match.span()


def extract_sources(text: str) -> Tuple[List[str], Optional[Tuple[int, int]]]:
    match = _SOURCE_RE.search(text)
    if not match:
        bare = _BARE_SOURCE_RE.search(text)
        return [], (bare.span() if bare else None)
    urls: List[str] = []
    for raw in match.group(1).split(","):
        url = _clean_url(raw.strip())
        if url and url not in urls:
            urls.append(url)
    return urls, match.span()


def merge_sources(original_url: Optional[str], sources: List[str]) -> List[str]:
    """Put the item's own URL first, without duplicating it."""
    if not original_url:
        return list(sources)
    return [original_url] + [u for u in sources if u != original_url]


def _remove_spans(text: str, spans: List[Tuple[int, int]]) -> str:
    # Right to left so earlier offsets stay valid
    for start, end in sorted(spans, reverse=True):
        text = text[:start] + text[end:]
    return text


def clean_body(text: str) -> str:
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{2,}", "\n\n", text)
    return text.strip()


def split_sentences(text: str) -> List[str]:
    sentences = (s.strip() for s in _SENTENCE_RE.findall(text))
    return [s for s in sentences if s and re.search(r"\w", s)]


def split_lead(body: str) -> Tuple[str, str]:
    sentences = split_sentences(body)
    if not sentences:
        return body, ""
    return " ".join(sentences[:2]), " ".join(sentences[2:])


def segment_summary(summary: Optional[str], original_url: Optional[str] = None) -> Segments:
    """
    Parse a stored summary into priority, recommendation, sources, lead and analysis.

    Each label is located independently; spans that overlap an earlier
    match (e.g. a "Source:" quoted inside the recommendation) are left to
    the match that claimed them first.
    """
    text = summary or ""

    priority, priority_span = extract_priority(text)
    recommendation, rec_span = extract_recommendation(text)
    sources, source_span = extract_sources(text)

    spans: List[Tuple[int, int]] = []
    for span in (priority_span, rec_span, source_span):
        if span is None:
            continue
        if any(span[0] < end and start < span[1] for start, end in spans):
            continue
        spans.append(span)

    body = clean_body(_remove_spans(text, spans))
    lead, analysis = split_lead(body)

    return Segments(
        priority=priority,
        recommendation=recommendation,
        sources=merge_sources(original_url, sources),
        body=body,
        lead=lead,
        analysis=analysis,
    )
