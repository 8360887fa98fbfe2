from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .media import SpeechChain, narration_text
from .models import NewsItem

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioSource:
    kind: str  # "url" | "bytes" | "unavailable"
    url: Optional[str] = None
    data: Optional[bytes] = None

    @property
    def available(self) -> bool:
        return self.kind != "unavailable"


UNAVAILABLE = AudioSource(kind="unavailable")


class PlaybackController:
    """
    Single-flight playback for one page/session.

    Starting an item stops whatever was playing; `play` returns the id
    that was stopped so the caller can tear its player down.
    """

    def __init__(self, current: Optional[str] = None):
        self.current = current

    def play(self, item_id: str) -> Optional[str]:
        stopped = self.current if self.current != item_id else None
        self.current = item_id
        return stopped

    def stop(self) -> Optional[str]:
        stopped, self.current = self.current, None
        return stopped

    def toggle(self, item_id: str) -> bool:
        """Listen/Stop button. Returns True when the item is now playing."""
        if self.current == item_id:
            self.stop()
            return False
        self.play(item_id)
        return True

    def is_playing(self, item_id: str) -> bool:
        return self.current == item_id


def resolve_audio(item: NewsItem, fallback: Optional[SpeechChain] = None) -> AudioSource:
    """Stored audio first, then on-demand synthesis, else 'unavailable'. Never raises."""
    if item.audio_url:
        return AudioSource(kind="url", url=item.audio_url)
    if fallback is None:
        return UNAVAILABLE
    try:
        data = fallback.synthesize(narration_text(item.title, item.summary))
    except Exception as e:
        log.warning("On-demand speech for %s failed: %s", item.id, e)
        return UNAVAILABLE
    if not data:
        return UNAVAILABLE
    return AudioSource(kind="bytes", data=data)
