"""
Speech-to-text adapters.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from .errors import ProviderError
from .models import AUTO_LANGUAGE, Segment, TranscriptionResult

logger = logging.getLogger("videonova")


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _segments_from_response(resp: Any) -> tuple[Segment, ...]:
    segs = _field(resp, "segments") or []
    return tuple(
        Segment(
            start=float(_field(seg, "start", 0.0)),
            end=float(_field(seg, "end", 0.0)),
            text=str(_field(seg, "text", "")).strip(),
        )
        for seg in segs
    )


class OpenAISpeechToText:
    """Transcribes audio with the OpenAI Whisper API."""

    def __init__(self, client: AsyncOpenAI, model: str = "whisper-1"):
        self.client = client
        self.model = model

    async def transcribe(self, audio_path: str, language: str | None = None) -> TranscriptionResult:
        if not Path(audio_path).is_file():
            raise ProviderError(f"Failed to transcribe audio: Audio file not found: {audio_path}")
        kwargs: dict[str, Any] = {"model": self.model, "response_format": "verbose_json"}
        if language and language != AUTO_LANGUAGE:
            kwargs["language"] = language
        logger.info("Transcribing with %s (language: %s) …", self.model, language or AUTO_LANGUAGE)
        try:
            with open(audio_path, "rb") as f:
                resp = await self.client.audio.transcriptions.create(file=f, **kwargs)
        except (OpenAIError, OSError) as e:
            raise ProviderError(f"Failed to transcribe audio: {e}") from e

        if isinstance(resp, str):
            return TranscriptionResult(text=resp.strip())
        return TranscriptionResult(
            text=str(_field(resp, "text", "") or "").strip(),
            segments=_segments_from_response(resp),
            language=_field(resp, "language"),
        )


class LocalWhisperSpeechToText:
    """Transcribes audio locally with faster-whisper (optional `local` extra)."""

    def __init__(self, model_name: str = "base", beam_size: int = 1):
        self.model_name = model_name
        self.beam_size = beam_size
        self._model = None

    def _load(self):
        if self._model is None:
            try:
                from faster_whisper import WhisperModel
            except ImportError as e:
                raise ProviderError(
                    "faster-whisper is not installed. Install with: pip install 'videonova[local]'"
                ) from e
            self._model = WhisperModel(self.model_name, device="cpu", compute_type="int8")
        return self._model

    def _transcribe_sync(self, audio_path: str, language: str | None) -> TranscriptionResult:
        model = self._load()
        whisper_language = None if not language or language == AUTO_LANGUAGE else language.lower()
        segments_iter, info = model.transcribe(
            audio_path,
            language=whisper_language,
            vad_filter=True,
            beam_size=self.beam_size,
            word_timestamps=False,
        )
        segments = tuple(
            Segment(start=float(s.start), end=float(s.end), text=str(s.text).strip())
            for s in segments_iter
        )
        return TranscriptionResult(
            text=" ".join(s.text for s in segments if s.text).strip(),
            segments=segments,
            language=getattr(info, "language", None),
        )

    async def transcribe(self, audio_path: str, language: str | None = None) -> TranscriptionResult:
        if not Path(audio_path).is_file():
            raise ProviderError(f"Failed to transcribe audio: Audio file not found: {audio_path}")
        logger.info(
            "Transcribing locally with faster-whisper (%s, language: %s) …",
            self.model_name,
            language or AUTO_LANGUAGE,
        )
        return await asyncio.to_thread(self._transcribe_sync, audio_path, language)
