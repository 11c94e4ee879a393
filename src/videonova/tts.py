"""
Text-to-speech synthesis with OpenAI and ElevenLabs.
"""

import logging
from pathlib import Path

import httpx
from openai import AsyncOpenAI, OpenAIError

from .errors import ProviderError
from .io_ffmpeg import ensure_dir
from .models import SynthesisOptions

logger = logging.getLogger("videonova")

ELEVENLABS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
USER_AGENT = "videonova/0.1"


class OpenAISpeechSynthesizer:
    """Synthesizes MP3 speech with the OpenAI audio.speech endpoint."""

    def __init__(self, client: AsyncOpenAI, default_model: str = "tts-1"):
        self.client = client
        self.default_model = default_model

    async def synthesize(self, text: str, options: SynthesisOptions, out_path: str) -> str:
        ensure_dir(str(Path(out_path).parent))
        model = options.model or self.default_model
        logger.info("Synthesizing %d characters with %s (voice %s)", len(text), model, options.voice)
        try:
            response = await self.client.audio.speech.create(
                model=model,
                voice=options.voice,
                input=text,
                speed=options.speed or 1.0,
                response_format="mp3",
            )
            with open(out_path, "wb") as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)
        except (OpenAIError, OSError) as e:
            raise ProviderError(f"Failed to synthesize speech: {e}") from e
        return out_path


class ElevenLabsSpeechSynthesizer:
    """
    Synthesizes MP3 speech with ElevenLabs.

    `options.voice` is used as the ElevenLabs voice_id when `voice_id` is not set.
    """

    def __init__(
        self,
        api_key: str,
        voice_id: str | None = None,
        model_id: str = "eleven_multilingual_v2",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ProviderError("ELEVENLABS_API_KEY is not set.")
        self.api_key = api_key
        self.voice_id = voice_id
        self.model_id = model_id
        self._transport = transport

    async def synthesize(self, text: str, options: SynthesisOptions, out_path: str) -> str:
        voice_id = self.voice_id or options.voice
        if not voice_id:
            raise ProviderError("ElevenLabs voice_id is required (set ELEVENLABS_VOICE_ID).")
        ensure_dir(str(Path(out_path).parent))
        headers = {
            "xi-api-key": self.api_key,
            "accept": "audio/mpeg",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        payload = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": {"stability": 0.5, "similarity_boost": 0.75, "speed": options.speed or 1.0},
        }
        logger.info("Synthesizing %d characters with ElevenLabs (voice %s)", len(text), voice_id)
        try:
            async with httpx.AsyncClient(
                follow_redirects=True, timeout=60.0, transport=self._transport
            ) as client:
                r = await client.post(ELEVENLABS_URL.format(voice_id=voice_id), json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderError(f"Failed to synthesize speech: {e}") from e

        ctype = r.headers.get("content-type", "")
        if r.status_code != 200 or not ctype.startswith(("audio/", "application/octet-stream")):
            raise ProviderError(f"ElevenLabs TTS failed: {r.status_code} {r.text[:300]}")
        Path(out_path).write_bytes(r.content)
        return out_path
