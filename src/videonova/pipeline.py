"""
Single-job pipeline: download, extract audio, transcribe, translate, synthesize, merge.

The orchestrator owns a temporary workspace for the lifetime of one job and
removes it whether the job completes or fails.
"""

import asyncio
import logging
import os
import re
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path

from pydub import AudioSegment

from .config import Settings
from .errors import (
    CleanupError,
    CollaboratorError,
    ConfigurationError,
    PreconditionError,
    SynthesizedAudioMissingError,
)
from .fetcher import YtDlpFetcher
from .interfaces import MediaFetcher, MediaTranscoder, TimingAdjuster, VocalSeparator
from .io_ffmpeg import FFmpegTranscoder, mix_tracks
from .models import (
    AUTO_LANGUAGE,
    DEFAULT_VOICE,
    Job,
    JobResult,
    PipelineState,
    ProgressEvent,
    SynthesisOptions,
    TextKind,
    TranscriptionResult,
    TranslationResult,
)
from .services import LanguageServices, build_language_services
from .state import (
    Completed,
    Downloading,
    ExtractingAudio,
    Failed,
    Idle,
    JobState,
    Merging,
    Synthesizing,
    Transcribing,
    Translating,
)

logger = logging.getLogger("videonova")

ProgressCallback = Callable[[ProgressEvent], None]

WORKSPACE_PREFIX = "videonova-job-"
ORIGINAL_VIDEO_BASENAME = "original_video"
EXTRACTED_AUDIO_NAME = "extracted_audio.mp3"
# single best combined stream first, separate streams muxed by yt-dlp otherwise.
# Wildcard selectors always pass the fetcher's format check; pass an explicit
# `download_format` to pin format ids.
DOWNLOAD_FORMAT = "best/bestvideo+bestaudio"
FALLBACK_TITLE = "processed_video"
MAX_TITLE_LENGTH = 100
DURATION_TOLERANCE = 0.02
MERGE_CONTAINERS = {".mp4", ".mkv", ".mov", ".m4v"}

_UNSAFE_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_title(title: str | None) -> str:
    """Filesystem-safe, length-capped title, or the generic fallback name."""
    cleaned = _UNSAFE_CHARS_RE.sub("_", title or "")
    cleaned = re.sub(r"\s+", " ", cleaned).strip().strip(".")
    cleaned = cleaned[:MAX_TITLE_LENGTH].rstrip()
    return cleaned or FALLBACK_TITLE


def output_filename(title: str | None, target_language: str, container_ext: str) -> str:
    ext = container_ext.lstrip(".") or "mp4"
    lang = _UNSAFE_CHARS_RE.sub("_", target_language.strip())
    return f"{sanitize_title(title)}_translated_to_{lang}.{ext}"


def _require_file(path: Path | None, label: str) -> Path:
    # Re-checked at every stage: a file seen earlier may be gone or unreadable now.
    if path is None:
        raise PreconditionError(f"{label} is missing")
    if not path.is_file():
        raise PreconditionError(f"{label} not found: {path}")
    if not os.access(path, os.R_OK):
        raise PreconditionError(f"{label} is not readable: {path}")
    return path


def _mix_over_bed(dub_path: str, bed_path: str, out_path: str) -> str:
    dub = AudioSegment.from_file(dub_path)
    bed = AudioSegment.from_file(bed_path)
    mix_tracks(dub, bed).export(out_path, format="mp3")
    return out_path


class PipelineOrchestrator:
    """
    Drives one Job through the fixed stage sequence.

    An instance is bound to one job and `run()` may be awaited once. The
    `status`, `current_step`, `error_message` and `result_path` accessors give
    a live view at any time, starting from Idle before `run()` is called.
    """

    def __init__(
        self,
        job: Job,
        *,
        fetcher: MediaFetcher | None = None,
        transcoder: MediaTranscoder | None = None,
        services: LanguageServices | None = None,
        separator: VocalSeparator | None = None,
        timing: TimingAdjuster | None = None,
        voice: SynthesisOptions = DEFAULT_VOICE,
        on_progress: ProgressCallback | None = None,
        settings: Settings | None = None,
        download_format: str = DOWNLOAD_FORMAT,
    ):
        if not isinstance(job, Job):
            raise ConfigurationError("A Job is required.")
        settings = settings or Settings()
        self.job = job
        self.fetcher = fetcher or YtDlpFetcher()
        self.transcoder = transcoder or FFmpegTranscoder(
            settings.ffmpeg_path or "ffmpeg", settings.ffprobe_path or "ffprobe"
        )
        self.services = services or build_language_services(job.credential, settings)
        self.separator = separator
        self.timing = timing
        self.voice = voice
        self.download_format = download_format
        self.on_progress = on_progress

        self._state: JobState = Idle()
        self._current_step = self._state.description
        self._workspace: Path | None = None
        self._started = False

    @property
    def status(self) -> PipelineState:
        return self._state.status

    @property
    def current_step(self) -> str:
        return self._current_step

    @property
    def error_message(self) -> str | None:
        return self._state.error_message if isinstance(self._state, Failed) else None

    @property
    def result_path(self) -> str | None:
        return str(self._state.result_path) if isinstance(self._state, Completed) else None

    @property
    def result(self) -> JobResult:
        return JobResult(
            final_state=self.status,
            current_step=self.current_step,
            error_message=self.error_message,
            output_file_path=self.result_path,
        )

    async def run(self) -> JobResult:
        """
        Run every stage, then clean up. Never raises for a stage failure: the
        error is recorded as the Failed state instead.
        """
        if self._started:
            raise RuntimeError("PipelineOrchestrator.run() may only be called once per instance")
        self._started = True
        logger.info("Starting processing for: %s", self.job.source_url)

        try:
            self._current_step = "Initializing temporary directory"
            self._workspace = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX))
            logger.info("Created temporary directory: %s", self._workspace)

            extracting = await self._download(Downloading(workspace=self._workspace))
            transcribing = await self._extract_audio(extracting)
            translating = await self._transcribe(transcribing)
            synthesizing = await self._translate(translating)
            merging = await self._synthesize(synthesizing)
            result_path = await self._merge(merging)

            self._enter(Completed(result_path=result_path))
            logger.info("Processing completed successfully. Result: %s", result_path)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            stage = self._state.status
            self._enter(Failed(error_message=message, failed_during=stage))
            logger.error("Pipeline failed for %s during %s: %s", self.job.source_url, stage.value, message)
            logger.debug("Failure details", exc_info=True)
        finally:
            await self._cleanup()
        return self.result

    async def _download(self, state: Downloading) -> ExtractingAudio:
        self._enter(state)
        if not state.workspace.is_dir():
            raise PreconditionError(f"Workspace not found: {state.workspace}")
        url = self.job.source_url
        info = await self.fetcher.get_info(url)
        destination = state.workspace / f"{ORIGINAL_VIDEO_BASENAME}.%(ext)s"
        video_path = await self.fetcher.download_media(
            url, self.download_format, str(destination), self._relay_percent
        )
        logger.info("Downloaded video to %s", video_path)
        return ExtractingAudio(workspace=state.workspace, info=info, video_path=Path(video_path))

    async def _extract_audio(self, state: ExtractingAudio) -> Transcribing:
        self._enter(state)
        video_path = _require_file(state.video_path, "Downloaded video")
        extracted = Path(
            await self.transcoder.extract_audio(
                str(video_path), str(state.workspace / EXTRACTED_AUDIO_NAME), self._relay_ratio
            )
        )
        speech_path, instrumental_path = extracted, None
        if self.separator is not None:
            _require_file(extracted, "Extracted audio")
            separated = await self.separator.separate_vocals(
                str(extracted), str(state.workspace / "separated")
            )
            speech_path = Path(separated.vocal_path)
            instrumental_path = Path(separated.instrumental_path)
        return Transcribing(
            workspace=state.workspace,
            info=state.info,
            video_path=state.video_path,
            speech_path=speech_path,
            instrumental_path=instrumental_path,
        )

    async def _transcribe(self, state: Transcribing) -> Translating:
        self._enter(state)
        speech_path = _require_file(state.speech_path, "Extracted audio")
        transcription = await self.services.stt.transcribe(str(speech_path), self.job.source_language)
        if not isinstance(transcription, TranscriptionResult):
            raise CollaboratorError("Speech-to-text returned no transcription result")
        if transcription.kind is TextKind.EMPTY:
            logger.warning("Transcription produced empty text; there is no speech to dub")
        else:
            logger.info(
                "Transcribed %d characters (detected language: %s)",
                len(transcription.text),
                transcription.language or "unknown",
            )
        return Translating(
            workspace=state.workspace,
            info=state.info,
            video_path=state.video_path,
            instrumental_path=state.instrumental_path,
            transcription=transcription,
        )

    def _effective_source_language(self, transcription: TranscriptionResult) -> str | None:
        declared = self.job.source_language
        if declared and declared != AUTO_LANGUAGE:
            return declared
        return transcription.language or None

    async def _translate(self, state: Translating) -> Synthesizing:
        self._enter(state)
        transcription = state.transcription
        if transcription is None:
            raise PreconditionError("Transcription result is missing")
        target = self.job.target_language
        source = self._effective_source_language(transcription)

        if transcription.kind is TextKind.EMPTY:
            logger.info("Skipping translation: transcript is empty")
            translation = TranslationResult(translated_text="", target_lang=target, source_lang=source)
        else:
            translation = await self.services.translator.translate(transcription.text, target, source)
            if not isinstance(translation, TranslationResult):
                raise CollaboratorError("Translator returned no translation result")
            if translation.kind is TextKind.EMPTY:
                logger.warning("Translation produced empty text")
        return Synthesizing(
            workspace=state.workspace,
            info=state.info,
            video_path=state.video_path,
            instrumental_path=state.instrumental_path,
            translation=translation,
        )

    async def _synthesize(self, state: Synthesizing) -> Merging:
        self._enter(state)
        translation = state.translation
        if translation is None:
            raise PreconditionError("Translation result is missing")
        if translation.kind is TextKind.EMPTY:
            logger.info("Skipping synthesis: nothing to dub")
            return Merging(
                workspace=state.workspace,
                info=state.info,
                video_path=state.video_path,
                dubbed_audio_path=None,
            )

        video_path = _require_file(state.video_path, "Downloaded video")
        target = self.job.target_language
        out_path = state.workspace / f"{video_path.stem}_audio_{target}.mp3"
        dubbed = Path(
            await self.services.synthesizer.synthesize(translation.translated_text, self.voice, str(out_path))
        )

        if self.timing is not None:
            dubbed = await self._fit_to_video(video_path, dubbed)
        if state.instrumental_path is not None:
            bed = _require_file(state.instrumental_path, "Instrumental track")
            _require_file(dubbed, "Synthesized audio")
            mixed = state.workspace / f"{video_path.stem}_mix_{target}.mp3"
            dubbed = Path(await asyncio.to_thread(_mix_over_bed, str(dubbed), str(bed), str(mixed)))

        return Merging(
            workspace=state.workspace,
            info=state.info,
            video_path=state.video_path,
            dubbed_audio_path=dubbed,
        )

    async def _fit_to_video(self, video_path: Path, dubbed: Path) -> Path:
        _require_file(dubbed, "Synthesized audio")
        video_seconds = await self.transcoder.probe_duration(str(video_path))
        dub_seconds = await self.transcoder.probe_duration(str(dubbed))
        if video_seconds <= 0 or dub_seconds <= 0:
            return dubbed
        factor = dub_seconds / video_seconds
        if abs(factor - 1.0) <= DURATION_TOLERANCE:
            return dubbed
        logger.info("Stretching dub %.2fs -> %.2fs (factor %.3f)", dub_seconds, video_seconds, factor)
        fitted = dubbed.with_name(f"{dubbed.stem}_fitted{dubbed.suffix}")
        return Path(await self.timing.adjust_timing(str(dubbed), factor, str(fitted)))

    async def _merge(self, state: Merging) -> Path:
        self._enter(state)
        video_path = _require_file(state.video_path, "Downloaded video")

        out_dir = Path(self.job.output_directory).expanduser()
        out_dir.mkdir(parents=True, exist_ok=True)
        title = state.info.title if state.info is not None else None

        if state.dubbed_audio_path is not None:
            if not state.dubbed_audio_path.is_file():
                raise SynthesizedAudioMissingError(str(state.dubbed_audio_path))
            suffix = video_path.suffix if video_path.suffix.lower() in MERGE_CONTAINERS else ".mp4"
            final_path = out_dir / output_filename(title, self.job.target_language, suffix)
            await self.transcoder.merge_audio_video(
                str(video_path), str(state.dubbed_audio_path), str(final_path), self._relay_ratio
            )
        else:
            final_path = out_dir / output_filename(title, self.job.target_language, video_path.suffix)
            logger.info("No dubbed audio; copying original video to %s", final_path)
            await asyncio.to_thread(shutil.copyfile, video_path, final_path)

        if not final_path.is_file():
            raise CollaboratorError(f"Merge finished but output file is missing: {final_path}")
        return final_path

    def _enter(self, state: JobState) -> None:
        if self._state.status.is_terminal:
            raise RuntimeError(f"Job already {self._state.status.value}; cannot enter {state.status.value}")
        self._state = state
        self._current_step = state.description
        logger.info("[%s] %s", state.status.value, state.description)
        if isinstance(state, Completed):
            self._emit(100.0)
        elif not isinstance(state, Failed):
            self._emit(0.0)

    def _emit(self, percent: float) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(ProgressEvent(stage=self._state.status, percent=percent))
        except Exception:
            logger.warning("Progress callback raised; ignoring", exc_info=True)

    def _relay_percent(self, percent: float) -> None:
        self._emit(percent)

    def _relay_ratio(self, ratio: float) -> None:
        self._emit(ratio * 100.0)

    async def _cleanup(self) -> None:
        workspace = self._workspace
        if workspace is None:
            logger.debug("No temporary directory to clean up.")
            return
        self._current_step = "Cleaning up temporary files"
        try:
            if workspace.exists():
                await asyncio.to_thread(shutil.rmtree, workspace)
            logger.info("Removed temporary directory: %s", workspace)
        except OSError as e:
            logger.warning("%s", CleanupError(f"Error cleaning up temporary directory {workspace}: {e}"))
        finally:
            self._workspace = None
            self._current_step = self._state.description
