"""
Vocal/instrumental separation with Demucs.
"""

import asyncio
import logging
import sys
from pathlib import Path

from .errors import SeparationError, TranscodeError
from .io_ffmpeg import ensure_dir, run
from .models import SeparationResult

logger = logging.getLogger("videonova")


class DemucsSeparator:
    """
    Runs `python -m demucs --two-stems=vocals` on an audio file.

    Demucs writes `<output_dir>/<model>/<track>/vocals.wav` and `no_vocals.wav`.
    """

    def __init__(self, python_executable: str | None = None, model: str = "htdemucs"):
        self.python_executable = python_executable or sys.executable
        self.model = model

    def command(self, audio_path: str, output_dir: str) -> list[str]:
        return [
            self.python_executable,
            "-m",
            "demucs",
            "--two-stems=vocals",
            "-n",
            self.model,
            "-o",
            output_dir,
            audio_path,
        ]

    async def separate_vocals(self, audio_path: str, output_dir: str) -> SeparationResult:
        if not Path(audio_path).is_file():
            raise SeparationError(f"Input audio file not found: {audio_path}")
        ensure_dir(output_dir)
        logger.info("Separating vocals with Demucs (%s)", self.model)
        try:
            await asyncio.to_thread(run, self.command(audio_path, output_dir))
        except TranscodeError as e:
            raise SeparationError(f"Demucs failed: {e} {e.stderr[-300:]}".rstrip()) from e

        track_dir = Path(output_dir) / self.model / Path(audio_path).stem
        vocal_path = track_dir / "vocals.wav"
        instrumental_path = track_dir / "no_vocals.wav"
        if not vocal_path.is_file() or not instrumental_path.is_file():
            raise SeparationError("Demucs completed but output files not found")
        return SeparationResult(vocal_path=str(vocal_path), instrumental_path=str(instrumental_path))
