"""
Data models for the dubbing pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum

from .errors import ConfigurationError

AUTO_LANGUAGE = "auto"


@dataclass(frozen=True)
class Job:
    """One URL to dub into one target language."""

    source_url: str
    target_language: str
    output_directory: str
    credential: str = field(repr=False)
    source_language: str = AUTO_LANGUAGE

    def __post_init__(self) -> None:
        if not (self.source_url or "").strip():
            raise ConfigurationError("Video URL is required.")
        if not (self.target_language or "").strip():
            raise ConfigurationError("Target language is required.")
        if not (self.output_directory or "").strip():
            raise ConfigurationError("Output folder path is required.")
        if not (self.credential or "").strip():
            raise ConfigurationError("API key is required.")
        if not (self.source_language or "").strip():
            object.__setattr__(self, "source_language", AUTO_LANGUAGE)


@dataclass(frozen=True)
class VideoFormat:
    format_id: str
    ext: str = ""
    format_note: str | None = None
    resolution: str | None = None
    width: int | None = None
    height: int | None = None
    filesize: int | None = None
    fps: float | None = None
    vcodec: str | None = None
    acodec: str | None = None
    audio_channels: int | None = None

    @property
    def is_video_only(self) -> bool:
        return self.vcodec != "none" and self.acodec in ("none", "no")

    @property
    def is_audio_only(self) -> bool:
        return self.acodec != "none" and self.vcodec in ("none", "no")


@dataclass(frozen=True)
class SubtitleTrack:
    ext: str
    url: str
    name: str | None = None


@dataclass(frozen=True)
class VideoInfo:
    """Metadata snapshot of a remote video, fetched once per job."""

    id: str
    title: str
    duration: float = 0.0
    uploader: str = ""
    description: str = ""
    thumbnail: str = ""
    upload_date: str = ""
    formats: tuple[VideoFormat, ...] = ()
    subtitles: dict[str, list[SubtitleTrack]] = field(default_factory=dict)
    automatic_captions: dict[str, list[SubtitleTrack]] = field(default_factory=dict)
    original_language: str | None = None

    def has_format(self, format_id: str) -> bool:
        return any(f.format_id == format_id for f in self.formats)


@dataclass(frozen=True)
class BestFormats:
    video_format_id: str
    audio_format_id: str


@dataclass(frozen=True)
class DownloadedComponents:
    video_path: str
    audio_path: str
    subtitle_path: str | None
    info: VideoInfo


@dataclass(frozen=True)
class Segment:
    """A single transcribed segment with timing and text."""

    start: float  # seconds
    end: float  # seconds
    text: str


class TextKind(Enum):
    """Outcome of a text-producing stage that did not raise."""

    PRODUCED = "produced"
    EMPTY = "empty"


def classify_text(text: str | None) -> TextKind:
    """Whitespace-only text counts as empty."""
    if text is None or not text.strip():
        return TextKind.EMPTY
    return TextKind.PRODUCED


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    segments: tuple[Segment, ...] = ()
    language: str | None = None

    @property
    def kind(self) -> TextKind:
        return classify_text(self.text)


@dataclass(frozen=True)
class TranslationResult:
    translated_text: str
    target_lang: str
    source_lang: str | None = None

    @property
    def kind(self) -> TextKind:
        return classify_text(self.translated_text)


@dataclass(frozen=True)
class SynthesisOptions:
    voice: str
    model: str | None = None
    speed: float = 1.0


DEFAULT_VOICE = SynthesisOptions(voice="alloy", model="tts-1", speed=1.0)


@dataclass(frozen=True)
class SeparationResult:
    vocal_path: str
    instrumental_path: str


class PipelineState(Enum):
    IDLE = "idle"
    DOWNLOADING = "downloading"
    EXTRACTING_AUDIO = "extracting"
    TRANSCRIBING = "transcribing"
    TRANSLATING = "translating"
    SYNTHESIZING = "synthesizing"
    MERGING = "merging"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.COMPLETED, PipelineState.FAILED)


@dataclass(frozen=True)
class ProgressEvent:
    stage: PipelineState
    percent: float


@dataclass(frozen=True)
class JobResult:
    """Live snapshot of a job, authoritative once `final_state` is terminal."""

    final_state: PipelineState
    current_step: str
    error_message: str | None = None
    output_file_path: str | None = None


@dataclass(frozen=True)
class JobOutcome:
    """What `start_job` hands back to a UI or CLI."""

    success: bool
    result_path: str | None = None
    error_message: str | None = None

    @classmethod
    def from_result(cls, result: JobResult) -> "JobOutcome":
        if result.final_state is PipelineState.COMPLETED:
            return cls(success=True, result_path=result.output_file_path)
        return cls(success=False, error_message=result.error_message or "Job did not complete")
