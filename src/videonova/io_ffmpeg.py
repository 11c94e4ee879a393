"""
Audio and video processing with ffmpeg/ffprobe.
"""

import asyncio
import codecs
import logging
import re
import subprocess
from pathlib import Path

from pydub import AudioSegment

from .errors import TranscodeError
from .interfaces import RatioCallback

logger = logging.getLogger("videonova")

_TIME_RE = re.compile(r"time=(\d+):(\d+):(\d+(?:\.\d+)?)")
_DURATION_RE = re.compile(r"Duration: (\d+):(\d+):(\d+(?:\.\d+)?)")
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")
_STDERR_TAIL = 2000


def run(cmd: list[str], *, check: bool = True) -> str:
    """Run a command and return its combined stdout/stderr."""
    logger.debug("Running: %s", " ".join(map(str, cmd)))
    try:
        proc = subprocess.run(
            cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, check=False
        )
    except OSError as e:
        raise TranscodeError(f"Failed to start {cmd[0]}: {e}") from e
    if proc.returncode != 0 and check:
        logger.error("Command failed with code %d: %s", proc.returncode, proc.stdout[-_STDERR_TAIL:])
        raise TranscodeError(
            f"{Path(cmd[0]).name} exited with code {proc.returncode}",
            exit_code=proc.returncode,
            stderr=proc.stdout[-_STDERR_TAIL:],
        )
    return proc.stdout


def ensure_dir(path: str) -> None:
    """Ensure directory exists."""
    if path:
        Path(path).mkdir(parents=True, exist_ok=True)


def _hms_to_seconds(h: str, m: str, s: str) -> float:
    return int(h) * 3600 + int(m) * 60 + float(s)


def parse_progress(chunk: str, stderr_so_far: str) -> float | None:
    """
    Ratio of elapsed to total time from one chunk of ffmpeg's diagnostic output.

    The total comes from the `Duration:` banner seen so far, the elapsed time
    from the last `time=` entry in the chunk. Returns None when either is missing.
    """
    times = _TIME_RE.findall(chunk)
    duration = _DURATION_RE.search(stderr_so_far)
    if not times or not duration:
        return None
    total = _hms_to_seconds(*duration.groups())
    if total <= 0:
        return None
    return min(_hms_to_seconds(*times[-1]) / total, 1.0)


class ProgressReader:
    """
    Accumulates ffmpeg stderr and reports progress from complete lines only.

    ffmpeg ends status lines with a carriage return, and a read may stop in the
    middle of one. The unterminated tail is held back until the next chunk completes it.
    """

    def __init__(self) -> None:
        self._pending = ""
        self._complete = ""

    def feed(self, chunk: str) -> float | None:
        lines = _LINE_BREAK_RE.split(self._pending + chunk)
        self._pending = lines.pop()
        if not lines:
            return None
        text = "\n".join(lines)
        self._complete += text + "\n"
        return parse_progress(text, self._complete)


def atempo_chain(ratio: float) -> list[float]:
    """
    Split a tempo ratio into atempo steps within 0.5..2.0.
    atempo < 1.0 => slow down (longer), atempo > 1.0 => speed up (shorter).
    """
    if ratio <= 0:
        ratio = 1.0
    steps: list[float] = []
    r = ratio
    MIN_ATEMPO = 0.5
    MAX_ATEMPO = 2.0
    while r < MIN_ATEMPO or r > MAX_ATEMPO:
        step = MIN_ATEMPO if r < 1.0 else MAX_ATEMPO
        steps.append(step)
        r /= step
    steps.append(r)
    return steps


def mix_tracks(
    main: AudioSegment,
    background: AudioSegment | None = None,
    main_db: float = 0.0,
    background_db: float = -8.0,
) -> AudioSegment:
    """Overlay the main track on a background bed, padding the shorter one with silence."""
    if background is None:
        return main
    dur = max(len(main), len(background))
    main_pad = main + AudioSegment.silent(duration=dur - len(main)) if len(main) < dur else main
    bg_pad = (
        background + AudioSegment.silent(duration=dur - len(background))
        if len(background) < dur
        else background
    )
    return bg_pad.apply_gain(background_db).overlay(main_pad.apply_gain(main_db))


class FFmpegTranscoder:
    """Extracts, merges and probes media by spawning ffmpeg and ffprobe."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe"):
        if not ffmpeg_path:
            raise TranscodeError("ffmpeg binary path not found")
        if not ffprobe_path:
            raise TranscodeError("ffprobe binary path not found")
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path

    async def _execute(self, args: list[str], on_progress: RatioCallback | None = None) -> str:
        cmd = [self.ffmpeg_path, *args]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.DEVNULL, stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise TranscodeError(f"Failed to start FFmpeg process: {e}") from e

        stderr = ""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        progress = ProgressReader()
        while True:
            data = await proc.stderr.read(4096)
            if not data:
                break
            chunk = decoder.decode(data)
            stderr += chunk
            if on_progress is not None:
                ratio = progress.feed(chunk)
                if ratio is not None:
                    on_progress(ratio)
        stderr += decoder.decode(b"", final=True)

        exit_code = await proc.wait()
        if exit_code != 0:
            logger.error("ffmpeg failed with code %d: %s", exit_code, stderr[-_STDERR_TAIL:])
            raise TranscodeError(
                f"FFmpeg process exited with code {exit_code}",
                exit_code=exit_code,
                stderr=stderr[-_STDERR_TAIL:],
            )
        return stderr

    async def extract_audio(
        self, video_path: str, out_path: str, on_progress: RatioCallback | None = None
    ) -> str:
        """Extract the audio track of a video as MP3."""
        if not Path(video_path).is_file():
            raise TranscodeError(f"Video file not found: {video_path}")
        ensure_dir(str(Path(out_path).parent))
        args = [
            "-i",
            video_path,
            "-vn",
            "-acodec",
            "libmp3lame",
            "-q:a",
            "2",
            "-y",
            out_path,
        ]
        await self._execute(args, on_progress)
        return out_path

    async def merge_audio_video(
        self,
        video_path: str,
        audio_path: str,
        out_path: str,
        on_progress: RatioCallback | None = None,
    ) -> str:
        """Replace the audio track of a video, copying the video stream as is."""
        if not Path(video_path).is_file():
            raise TranscodeError(f"Video file not found: {video_path}")
        if not Path(audio_path).is_file():
            raise TranscodeError(f"Audio file not found: {audio_path}")
        ensure_dir(str(Path(out_path).parent))
        args = [
            "-i",
            video_path,
            "-i",
            audio_path,
            "-c:v",
            "copy",
            "-c:a",
            "aac",
            "-map",
            "0:v:0",
            "-map",
            "1:a:0",
            "-shortest",
            "-y",
            out_path,
        ]
        await self._execute(args, on_progress)
        return out_path

    async def probe_duration(self, path: str) -> float:
        """Media duration in seconds."""
        if not Path(path).is_file():
            raise TranscodeError(f"File not found: {path}")
        out = await asyncio.to_thread(
            run,
            [
                self.ffprobe_path,
                "-v",
                "error",
                "-show_entries",
                "format=duration",
                "-of",
                "default=noprint_wrappers=1:nokey=1",
                path,
            ],
        )
        try:
            return float(out.strip())
        except ValueError:
            raise TranscodeError(f"Could not parse duration from ffprobe output: {out.strip()!r}") from None
