"""
Contracts for the subsystems the pipeline calls but does not implement.
"""

from collections.abc import Callable
from typing import Protocol

from .models import (
    BestFormats,
    DownloadedComponents,
    SeparationResult,
    SynthesisOptions,
    TranscriptionResult,
    TranslationResult,
    VideoInfo,
)

# percent in 0..100
PercentCallback = Callable[[float], None]
# ratio in 0..1
RatioCallback = Callable[[float], None]
ComponentCallback = Callable[[str, float], None]


class MediaFetcher(Protocol):
    async def get_info(self, url: str) -> VideoInfo: ...

    async def download_media(
        self,
        url: str,
        format_selector: str,
        destination: str,
        on_progress: PercentCallback | None = None,
    ) -> str: ...

    async def download_audio_only(
        self, url: str, destination: str, on_progress: PercentCallback | None = None
    ) -> str: ...

    async def download_subtitles(self, url: str, language: str, destination: str) -> str | None: ...

    async def best_formats(self, url: str) -> BestFormats: ...

    async def download_components(
        self,
        url: str,
        output_dir: str,
        basename: str,
        on_progress: ComponentCallback | None = None,
    ) -> DownloadedComponents: ...


class MediaTranscoder(Protocol):
    async def extract_audio(
        self, video_path: str, out_path: str, on_progress: RatioCallback | None = None
    ) -> str: ...

    async def merge_audio_video(
        self,
        video_path: str,
        audio_path: str,
        out_path: str,
        on_progress: RatioCallback | None = None,
    ) -> str: ...

    async def probe_duration(self, path: str) -> float: ...


class SpeechToText(Protocol):
    async def transcribe(self, audio_path: str, language: str | None = None) -> TranscriptionResult: ...


class Translator(Protocol):
    async def translate(
        self, text: str, target_lang: str, source_lang: str | None = None
    ) -> TranslationResult: ...


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str, options: SynthesisOptions, out_path: str) -> str: ...


class VocalSeparator(Protocol):
    async def separate_vocals(self, audio_path: str, output_dir: str) -> SeparationResult: ...


class TimingAdjuster(Protocol):
    async def adjust_timing(self, audio_path: str, factor: float, out_path: str) -> str: ...
