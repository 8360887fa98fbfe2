from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

import requests
from openai import OpenAI

from .generator import LANGUAGE_NAMES, response_text
from .models import GeneratedItem, NewsItem
from .segmentation import segment_summary

log = logging.getLogger(__name__)

IMAGE_SIZE = "1024x1024"


# ----------------------------
# Images
# ----------------------------
@dataclass
class ImageResult:
    data: Optional[bytes]
    temp_url: Optional[str]


def image_prompt(item: GeneratedItem) -> str:
    lead = segment_summary(item.summary).lead
    return (
        "A modern, minimalist editorial illustration about artificial intelligence for the news story "
        f'"{item.title}". {lead} '
        "Abstract, technological style, vibrant colours, no text, high quality."
    )


def generate_image(
    client: OpenAI,
    prompt: str,
    model: str = "dall-e-3",
    size: str = IMAGE_SIZE,
    timeout: int = 60,
) -> Optional[ImageResult]:
    """
    Ask the images endpoint for one picture and download it.

    Returns None when generation fails. If only the download fails the
    result still carries the temporary URL so the caller can fall back to it.
    """
    try:
        resp = client.images.generate(model=model, prompt=prompt, n=1, size=size)
        temp_url = resp.data[0].url
    except Exception as e:
        log.error("Image generation failed: %s", e)
        return None

    if not temp_url:
        log.error("Image generation returned no URL")
        return None

    try:
        dl = requests.get(temp_url, timeout=timeout)
        dl.raise_for_status()
        return ImageResult(data=dl.content, temp_url=temp_url)
    except requests.RequestException as e:
        log.warning("Could not download generated image, keeping temporary URL: %s", e)
        return ImageResult(data=None, temp_url=temp_url)


# ----------------------------
# Speech providers
# ----------------------------
class SpeechProvider(Protocol):
    name: str

    def synthesize(self, text: str) -> Optional[bytes]:
        ...


ELEVENLABS_API_BASE = "https://api.elevenlabs.io/v1"


class ElevenLabsSpeech:
    """ElevenLabs text-to-speech over its REST API (POST /v1/text-to-speech/{voice_id})."""

    name = "elevenlabs"

    def __init__(
        self,
        api_key: str,
        voice_id: str,
        model_id: str = "eleven_multilingual_v2",
        stability: float = 0.5,
        similarity_boost: float = 0.75,
        timeout: int = 120,
    ):
        self.api_key = api_key
        self.voice_id = voice_id
        self.model_id = model_id
        self.stability = stability
        self.similarity_boost = similarity_boost
        self.timeout = timeout

    def synthesize(self, text: str) -> Optional[bytes]:
        url = f"{ELEVENLABS_API_BASE}/text-to-speech/{self.voice_id}"
        headers = {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {
                "stability": self.stability,
                "similarity_boost": self.similarity_boost,
            },
        }

        resp = requests.post(url, headers=headers, json=payload, stream=True, timeout=self.timeout)
        resp.raise_for_status()

        chunks: List[bytes] = []
        for chunk in resp.iter_content(chunk_size=8192):
            if chunk:
                chunks.append(chunk)
        return b"".join(chunks) or None


class OpenAISpeech:
    name = "openai"

    def __init__(self, client: OpenAI, model: str = "tts-1", voice: str = "alloy"):
        self.client = client
        self.model = model
        self.voice = voice

    def synthesize(self, text: str) -> Optional[bytes]:
        # The speech endpoint caps input at 4096 characters
        resp = self.client.audio.speech.create(
            model=self.model,
            voice=self.voice,
            input=text[:4096],
            response_format="mp3",
        )
        return resp.content or None


class SpeechChain:
    """
    Ordered list of interchangeable speech providers.

    Each provider is tried once, in order; the first non-empty payload wins.
    An exception or an empty result moves on to the next provider. When
    every provider fails the chain returns None.
    """

    def __init__(self, providers: Sequence[SpeechProvider]):
        self.providers = list(providers)

    def synthesize(self, text: str) -> Optional[bytes]:
        if not text or not text.strip():
            return None
        for provider in self.providers:
            try:
                audio = provider.synthesize(text)
            except Exception as e:
                log.warning("Speech provider %s failed: %s", provider.name, e)
                continue
            if audio:
                log.info("Speech synthesized with %s (%s bytes)", provider.name, len(audio))
                return audio
            log.warning("Speech provider %s returned no audio", provider.name)
        log.warning("All speech providers failed (%s)", ", ".join(p.name for p in self.providers) or "none")
        return None


def narration_text(title: str, summary: str) -> str:
    """Text to read aloud: title, lead, analysis and recommendation, without the raw markers."""
    seg = segment_summary(summary)
    parts = [title.strip().rstrip(".") + ".", seg.lead, seg.analysis]
    if seg.recommendation:
        parts.append(seg.recommendation)
    return " ".join(p for p in parts if p).strip()


# ----------------------------
# Podcast script
# ----------------------------
def write_podcast_script(
    client: OpenAI,
    model: str,
    items: Sequence[GeneratedItem | NewsItem],
    language: str = "es",
) -> str:
    """
    Turn the day's items into one flowing narration for the daily podcast.
    The stored summaries stay as they are; this text is only for TTS.
    """
    lang_name = LANGUAGE_NAMES.get(language, language)
    system_prompt = (
        "You are the host of a short daily AI news podcast. "
        "You turn a list of news summaries into a single, flowing narration "
        "that sounds like a human host reading the news out loud, with smooth transitions."
    )

    stories = "\n\n".join(f"{idx + 1}. {item.title}\n{item.summary}" for idx, item in enumerate(items))
    user_prompt = f"""
Here are today's stories:

---
{stories}
---

TASK:
- Write the podcast script in {lang_name}, as one continuous narration of 2–4 minutes.
- Open with a one-sentence greeting and close with a one-sentence sign-off.
- Do NOT read out labels such as Priority, Recommendation or Source, nor any URL.
- No markdown, no headings, no bullet points.
- Do NOT add new facts; just rephrase and connect what is already there.
""".strip()

    resp = client.responses.create(
        model=model,
        input=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        text={"format": {"type": "text"}},
        store=False,
    )
    return response_text(resp, "podcast script").strip()


# ----------------------------
# Bundle used by the pipeline
# ----------------------------
class MediaSynthesizer:
    def __init__(
        self,
        client: OpenAI,
        speech: SpeechChain,
        text_model: str = "gpt-4o",
        image_model: str = "dall-e-3",
        language: str = "es",
        timeout: int = 60,
    ):
        self.client = client
        self.speech = speech
        self.text_model = text_model
        self.image_model = image_model
        self.language = language
        self.timeout = timeout

    def image_for(self, item: GeneratedItem) -> Optional[ImageResult]:
        return generate_image(self.client, image_prompt(item), model=self.image_model, timeout=self.timeout)

    def audio_for(self, item: GeneratedItem) -> Optional[bytes]:
        return self.speech.synthesize(narration_text(item.title, item.summary))

    def podcast(self, items: Sequence[GeneratedItem]) -> tuple[Optional[str], Optional[bytes]]:
        """Script plus audio for the daily podcast; either may be None."""
        try:
            script = write_podcast_script(self.client, self.text_model, items, self.language)
        except Exception as e:
            log.error("Podcast script generation failed: %s", e)
            return None, None
        return script, self.speech.synthesize(script)
