"""
Per-job construction of the language-service triad.
"""

from dataclasses import dataclass

from openai import AsyncOpenAI

from .config import Settings
from .errors import ConfigurationError
from .interfaces import SpeechSynthesizer, SpeechToText, Translator
from .stt import LocalWhisperSpeechToText, OpenAISpeechToText
from .translation import OpenAITranslator
from .tts import ElevenLabsSpeechSynthesizer, OpenAISpeechSynthesizer


@dataclass(frozen=True)
class LanguageServices:
    stt: SpeechToText
    translator: Translator
    synthesizer: SpeechSynthesizer


def make_openai_client(credential: str) -> AsyncOpenAI:
    return AsyncOpenAI(api_key=credential, timeout=60.0, max_retries=2)


def build_language_services(credential: str, settings: Settings | None = None) -> LanguageServices:
    """
    Build the STT/translate/TTS adapters for one job.

    A single OpenAI client is created from `credential` and shared by every
    OpenAI-backed adapter; nothing is cached between jobs.
    """
    settings = settings or Settings()
    client = make_openai_client(credential)

    if settings.stt_provider == "openai":
        stt: SpeechToText = OpenAISpeechToText(client, model=settings.whisper_model)
    elif settings.stt_provider == "local":
        stt = LocalWhisperSpeechToText(model_name=settings.local_whisper_model)
    else:
        raise ConfigurationError(f"Unknown speech-to-text provider: {settings.stt_provider}")

    if settings.tts_provider == "openai":
        synthesizer: SpeechSynthesizer = OpenAISpeechSynthesizer(client, default_model=settings.tts_model)
    elif settings.tts_provider == "elevenlabs":
        if not settings.elevenlabs_api_key:
            raise ConfigurationError("ELEVENLABS_API_KEY is not set.")
        synthesizer = ElevenLabsSpeechSynthesizer(
            settings.elevenlabs_api_key, voice_id=settings.elevenlabs_voice_id
        )
    else:
        raise ConfigurationError(f"Unknown text-to-speech provider: {settings.tts_provider}")

    return LanguageServices(
        stt=stt,
        translator=OpenAITranslator(client, model=settings.translation_model),
        synthesizer=synthesizer,
    )
