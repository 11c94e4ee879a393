"""
In-memory collaborators for pipeline tests.
"""

from pathlib import Path

import pytest

from videonova.errors import FormatUnavailableError
from videonova.models import (
    Job,
    SeparationResult,
    SynthesisOptions,
    TranscriptionResult,
    TranslationResult,
    VideoInfo,
)
from videonova.pipeline import PipelineOrchestrator
from videonova.services import LanguageServices

VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42-original-video"


class FakeFetcher:
    def __init__(self, title="Demo Clip", ext="mp4", error=None):
        self.title = title
        self.ext = ext
        self.error = error
        self.destinations: list[str] = []
        self.selectors: list[str] = []
        self.info_calls = 0

    async def get_info(self, url):
        self.info_calls += 1
        return VideoInfo(id="abc123", title=self.title, duration=12.0, uploader="someone")

    async def download_media(self, url, format_selector, destination, on_progress=None):
        self.destinations.append(destination)
        self.selectors.append(format_selector)
        if self.error is not None:
            raise self.error
        path = destination.replace("%(ext)s", self.ext)
        Path(path).write_bytes(VIDEO_BYTES)
        if on_progress is not None:
            on_progress(50.0)
            on_progress(100.0)
        return path

    @property
    def workspace(self) -> Path:
        return Path(self.destinations[0]).parent


class FakeTranscoder:
    def __init__(self, write_audio=True, durations=None):
        self.write_audio = write_audio
        self.durations = durations or {}
        self.extract_calls: list[tuple[str, str]] = []
        self.merge_calls: list[tuple[str, str, str]] = []

    async def extract_audio(self, video_path, out_path, on_progress=None):
        self.extract_calls.append((video_path, out_path))
        if self.write_audio:
            Path(out_path).write_bytes(b"extracted-audio")
        if on_progress is not None:
            on_progress(1.0)
        return out_path

    async def merge_audio_video(self, video_path, audio_path, out_path, on_progress=None):
        self.merge_calls.append((video_path, audio_path, out_path))
        Path(out_path).write_bytes(Path(video_path).read_bytes() + b"|" + Path(audio_path).read_bytes())
        return out_path

    async def probe_duration(self, path):
        return self.durations.get(Path(path).suffix, 10.0)


class FakeSpeechToText:
    def __init__(self, text="Hello world", language="en"):
        self.text = text
        self.language = language
        self.calls: list[tuple[str, str | None]] = []

    async def transcribe(self, audio_path, language=None):
        self.calls.append((audio_path, language))
        return TranscriptionResult(text=self.text, language=self.language)


class FakeTranslator:
    def __init__(self, translated="Hola mundo"):
        self.translated = translated
        self.calls: list[tuple[str, str, str | None]] = []

    async def translate(self, text, target_lang, source_lang=None):
        self.calls.append((text, target_lang, source_lang))
        return TranslationResult(translated_text=self.translated, target_lang=target_lang, source_lang=source_lang)


class FakeSynthesizer:
    def __init__(self, write=True):
        self.write = write
        self.calls: list[tuple[str, SynthesisOptions, str]] = []

    async def synthesize(self, text, options, out_path):
        self.calls.append((text, options, out_path))
        if self.write:
            Path(out_path).write_bytes(b"dubbed-" + text.encode())
        return out_path


class FakeSeparator:
    def __init__(self):
        self.calls: list[str] = []

    async def separate_vocals(self, audio_path, output_dir):
        self.calls.append(audio_path)
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        (out / "vocals.wav").write_bytes(b"vocals")
        (out / "no_vocals.wav").write_bytes(b"music")
        return SeparationResult(vocal_path=str(out / "vocals.wav"), instrumental_path=str(out / "no_vocals.wav"))


class FakeTiming:
    def __init__(self):
        self.calls: list[tuple[str, float, str]] = []

    async def adjust_timing(self, audio_path, factor, out_path):
        self.calls.append((audio_path, factor, out_path))
        Path(out_path).write_bytes(Path(audio_path).read_bytes())
        return out_path


class Collaborators:
    def __init__(self):
        self.fetcher = FakeFetcher()
        self.transcoder = FakeTranscoder()
        self.stt = FakeSpeechToText()
        self.translator = FakeTranslator()
        self.synthesizer = FakeSynthesizer()

    @property
    def services(self) -> LanguageServices:
        return LanguageServices(stt=self.stt, translator=self.translator, synthesizer=self.synthesizer)


@pytest.fixture
def fakes():
    return Collaborators()


@pytest.fixture
def make_orchestrator(tmp_path, fakes):
    def _make(target="es", source="auto", output_dir=None, **kwargs):
        job = Job(
            source_url="https://www.youtube.com/watch?v=abc123",
            target_language=target,
            output_directory=str(output_dir or tmp_path / "out"),
            credential="sk-test",
            source_language=source,
        )
        return PipelineOrchestrator(
            job,
            fetcher=kwargs.pop("fetcher", fakes.fetcher),
            transcoder=kwargs.pop("transcoder", fakes.transcoder),
            services=kwargs.pop("services", fakes.services),
            **kwargs,
        )

    return _make


@pytest.fixture
def format_unavailable_fetcher():
    return FakeFetcher(error=FormatUnavailableError("best/bestvideo+bestaudio"))
