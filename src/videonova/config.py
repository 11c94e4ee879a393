"""
Runtime settings read from the environment (and an optional .env file).
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger("videonova")


@dataclass(frozen=True)
class Settings:
    openai_api_key: str | None = None
    elevenlabs_api_key: str | None = None
    elevenlabs_voice_id: str | None = None
    ffmpeg_path: str | None = None
    ffprobe_path: str | None = None
    soundstretch_path: str | None = None
    python_executable: str | None = None
    whisper_model: str = "whisper-1"
    local_whisper_model: str = "base"
    translation_model: str = "gpt-4o-mini"
    tts_model: str = "tts-1"
    tts_voice: str = "alloy"
    stt_provider: str = "openai"
    tts_provider: str = "openai"
    output_dir: str | None = None

    def __repr__(self) -> str:
        # keys stay out of logs
        return (
            f"Settings(ffmpeg={self.ffmpeg_path!r}, ffprobe={self.ffprobe_path!r}, "
            f"stt={self.stt_provider!r}, tts={self.tts_provider!r}, "
            f"openai_key={'set' if self.openai_api_key else 'unset'})"
        )

    def missing_tools(self, *, soundstretch: bool = False) -> list[str]:
        """Names of required binaries that could not be located."""
        missing = []
        if not self.ffmpeg_path:
            missing.append("ffmpeg")
        if not self.ffprobe_path:
            missing.append("ffprobe")
        if soundstretch and not self.soundstretch_path:
            missing.append("soundstretch")
        return missing


def load_settings(env_file: str | None = None) -> Settings:
    """Load .env (if present) and build Settings from environment variables."""
    if env_file and Path(env_file).exists():
        load_dotenv(env_file)
    else:
        load_dotenv()

    def env(name: str, default: str | None = None) -> str | None:
        value = os.getenv(name)
        return value if value else default

    settings = Settings(
        openai_api_key=env("OPENAI_API_KEY"),
        elevenlabs_api_key=env("ELEVENLABS_API_KEY"),
        elevenlabs_voice_id=env("ELEVENLABS_VOICE_ID"),
        ffmpeg_path=env("VIDEONOVA_FFMPEG", shutil.which("ffmpeg")),
        ffprobe_path=env("VIDEONOVA_FFPROBE", shutil.which("ffprobe")),
        soundstretch_path=env("VIDEONOVA_SOUNDSTRETCH", shutil.which("soundstretch")),
        python_executable=env("VIDEONOVA_PYTHON"),
        whisper_model=env("VIDEONOVA_WHISPER_MODEL", "whisper-1"),
        local_whisper_model=env("VIDEONOVA_LOCAL_WHISPER_MODEL", "base"),
        translation_model=env("VIDEONOVA_TRANSLATION_MODEL", "gpt-4o-mini"),
        tts_model=env("VIDEONOVA_TTS_MODEL", "tts-1"),
        tts_voice=env("VIDEONOVA_TTS_VOICE", "alloy"),
        stt_provider=env("VIDEONOVA_STT", "openai"),
        tts_provider=env("VIDEONOVA_TTS", "openai"),
        output_dir=env("VIDEONOVA_OUTPUT_DIR"),
    )
    logger.debug("Loaded %r", settings)
    return settings
