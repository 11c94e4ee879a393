"""
Tests for settings loading.
"""

from videonova import config
from videonova.config import Settings, load_settings

ENV_VARS = [
    "OPENAI_API_KEY",
    "ELEVENLABS_API_KEY",
    "ELEVENLABS_VOICE_ID",
    "VIDEONOVA_FFMPEG",
    "VIDEONOVA_FFPROBE",
    "VIDEONOVA_SOUNDSTRETCH",
    "VIDEONOVA_PYTHON",
    "VIDEONOVA_WHISPER_MODEL",
    "VIDEONOVA_TTS_VOICE",
    "VIDEONOVA_STT",
    "VIDEONOVA_TTS",
    "VIDEONOVA_OUTPUT_DIR",
]


def _clear_env(monkeypatch):
    # setenv first so monkeypatch restores any value load_dotenv writes
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_load_settings_from_env_file(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    env_file = tmp_path / ".env"
    env_file.write_text(
        "OPENAI_API_KEY=sk-from-file\n"
        "VIDEONOVA_FFMPEG=/opt/ffmpeg\n"
        "VIDEONOVA_STT=local\n"
        "VIDEONOVA_OUTPUT_DIR=/data/out\n"
    )

    settings = load_settings(str(env_file))

    assert settings.openai_api_key == "sk-from-file"
    assert settings.ffmpeg_path == "/opt/ffmpeg"
    assert settings.stt_provider == "local"
    assert settings.tts_provider == "openai"
    assert settings.output_dir == "/data/out"
    assert settings.tts_voice == "alloy"


def test_binaries_default_to_path_lookup(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config.shutil, "which", lambda name: f"/usr/bin/{name}")

    settings = load_settings()

    assert settings.ffmpeg_path == "/usr/bin/ffmpeg"
    assert settings.ffprobe_path == "/usr/bin/ffprobe"
    assert settings.soundstretch_path == "/usr/bin/soundstretch"


def test_repr_hides_keys():
    settings = Settings(openai_api_key="sk-secret", elevenlabs_api_key="el-secret")
    text = repr(settings)
    assert "sk-secret" not in text
    assert "el-secret" not in text
    assert "openai_key=set" in text


def test_missing_tools():
    assert Settings().missing_tools() == ["ffmpeg", "ffprobe"]
    assert Settings(ffmpeg_path="f", ffprobe_path="p").missing_tools() == []
    assert Settings(ffmpeg_path="f", ffprobe_path="p").missing_tools(soundstretch=True) == ["soundstretch"]
