"""
Pitch-preserving time stretch of synthesized speech.

`factor` is a speed factor: 1.2 plays 20% faster (shorter), 0.8 slower (longer).
"""

import asyncio
import logging
from pathlib import Path

from pydub import AudioSegment

from .errors import TimingError, TranscodeError
from .io_ffmpeg import atempo_chain, ensure_dir, run

logger = logging.getLogger("videonova")


def _check(audio_path: str, factor: float, out_path: str) -> None:
    if not Path(audio_path).is_file():
        raise TimingError(f"Input audio file not found: {audio_path}")
    if factor <= 0:
        raise TimingError(f"Speed factor must be positive, got {factor}")
    ensure_dir(str(Path(out_path).parent))


class SoundStretchAdjuster:
    """
    SoundTouch's `soundstretch` CLI. Its `-tempo` is a percent change, not a ratio.

    soundstretch only reads and writes WAV, so other formats are converted with
    pydub on the way in and out.
    """

    def __init__(self, soundstretch_path: str = "soundstretch"):
        self.soundstretch_path = soundstretch_path

    def command(self, audio_path: str, factor: float, out_path: str) -> list[str]:
        return [self.soundstretch_path, audio_path, out_path, f"-tempo={(factor - 1.0) * 100:+.2f}"]

    def _stretch(self, audio_path: str, factor: float, out_path: str) -> None:
        src, dst = Path(audio_path), Path(out_path)
        wav_in = src if src.suffix.lower() == ".wav" else dst.with_name(f"{dst.stem}_in.wav")
        wav_out = dst if dst.suffix.lower() == ".wav" else dst.with_name(f"{dst.stem}_out.wav")
        if wav_in != src:
            AudioSegment.from_file(src).export(wav_in, format="wav")
        run(self.command(str(wav_in), factor, str(wav_out)))
        if not wav_out.is_file():
            raise TimingError("SoundStretch completed but output file not found")
        if wav_out != dst:
            AudioSegment.from_wav(wav_out).export(dst, format=dst.suffix.lstrip(".") or "mp3")

    async def adjust_timing(self, audio_path: str, factor: float, out_path: str) -> str:
        _check(audio_path, factor, out_path)
        try:
            await asyncio.to_thread(self._stretch, audio_path, factor, out_path)
        except TranscodeError as e:
            raise TimingError(f"SoundStretch failed: {e}") from e
        return out_path


class AtempoAdjuster:
    """ffmpeg `atempo` filter chain."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path

    def command(self, audio_path: str, factor: float, out_path: str) -> list[str]:
        filt = ",".join(f"atempo={s:.6f}" for s in atempo_chain(factor))
        return [self.ffmpeg_path, "-y", "-i", audio_path, "-filter:a", filt, out_path]

    async def adjust_timing(self, audio_path: str, factor: float, out_path: str) -> str:
        _check(audio_path, factor, out_path)
        logger.debug("atempo %.3f: %s -> %s", factor, audio_path, out_path)
        try:
            await asyncio.to_thread(run, self.command(audio_path, factor, out_path))
        except TranscodeError as e:
            raise TimingError(f"ffmpeg atempo failed: {e}") from e
        return out_path
