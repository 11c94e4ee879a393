"""
Per-state records for a single job.

Each record carries only the artifacts that exist once the job has reached that
state, so a stage cannot read an artifact that has not been produced yet.
"""

from dataclasses import dataclass
from pathlib import Path

from .models import PipelineState, TranscriptionResult, TranslationResult, VideoInfo


@dataclass(frozen=True)
class Idle:
    status = PipelineState.IDLE
    description = "Idle"


@dataclass(frozen=True)
class Downloading:
    workspace: Path

    status = PipelineState.DOWNLOADING
    description = "Downloading video"


@dataclass(frozen=True)
class ExtractingAudio:
    workspace: Path
    info: VideoInfo
    video_path: Path

    status = PipelineState.EXTRACTING_AUDIO
    description = "Extracting audio"


@dataclass(frozen=True)
class Transcribing:
    workspace: Path
    info: VideoInfo
    video_path: Path
    speech_path: Path
    instrumental_path: Path | None = None

    status = PipelineState.TRANSCRIBING
    description = "Transcribing speech"


@dataclass(frozen=True)
class Translating:
    workspace: Path
    info: VideoInfo
    video_path: Path
    instrumental_path: Path | None
    transcription: TranscriptionResult

    status = PipelineState.TRANSLATING
    description = "Translating transcript"


@dataclass(frozen=True)
class Synthesizing:
    workspace: Path
    info: VideoInfo
    video_path: Path
    instrumental_path: Path | None
    translation: TranslationResult

    status = PipelineState.SYNTHESIZING
    description = "Synthesizing speech"


@dataclass(frozen=True)
class Merging:
    workspace: Path
    info: VideoInfo
    video_path: Path
    dubbed_audio_path: Path | None  # None: nothing to dub, copy the video as is

    status = PipelineState.MERGING
    description = "Merging audio and video"


@dataclass(frozen=True)
class Completed:
    result_path: Path

    status = PipelineState.COMPLETED
    description = "Pipeline finished successfully"


@dataclass(frozen=True)
class Failed:
    error_message: str
    failed_during: PipelineState

    status = PipelineState.FAILED
    description = "Pipeline failed"


InProgress = Downloading | ExtractingAudio | Transcribing | Translating | Synthesizing | Merging
JobState = Idle | InProgress | Completed | Failed
