"""
Command-line interface for the dubbing pipeline.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace

from tqdm import tqdm

from .config import Settings, load_settings
from .jobs import start_job
from .models import AUTO_LANGUAGE, PipelineState, ProgressEvent, SynthesisOptions
from .separation import DemucsSeparator
from .timing import AtempoAdjuster, SoundStretchAdjuster

logger = logging.getLogger("videonova")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    ap = argparse.ArgumentParser(description="Dub an online video into another language")

    # IO
    ap.add_argument("url", nargs="?", help="Video URL")
    ap.add_argument("--target", "-t", help="Target language code (e.g. 'es', 'de')")
    ap.add_argument(
        "--source", "-s", default=AUTO_LANGUAGE, help="Source language code, or 'auto' to detect"
    )
    ap.add_argument("--output-dir", "-o", default=None, help="Output folder (default: $VIDEONOVA_OUTPUT_DIR)")
    ap.add_argument("--env-file", default=None, help="Read settings from this .env file")

    # Providers
    ap.add_argument("--stt", choices=["openai", "local"], default=None, help="Speech-to-text backend")
    ap.add_argument("--tts-provider", choices=["openai", "elevenlabs"], default=None)
    ap.add_argument("--voice", default=None, help="TTS voice (OpenAI voice name or ElevenLabs voice_id)")
    ap.add_argument("--tts-model", default=None)
    ap.add_argument("--speed", type=float, default=1.0, help="TTS speaking rate")

    # Optional audio processing
    ap.add_argument(
        "--separate-vocals",
        action="store_true",
        help="Split vocals from music with Demucs and keep the music under the dub",
    )
    ap.add_argument(
        "--fit-duration",
        choices=["soundstretch", "atempo"],
        default=None,
        help="Time-stretch the dub to the video length",
    )

    ap.add_argument("--check-tools", action="store_true", help="Report missing binaries and exit")
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    return ap.parse_args(argv)


class ProgressBars:
    """One tqdm bar per stage, fed from the orchestrator's progress events."""

    def __init__(self) -> None:
        self._stage: PipelineState | None = None
        self._bar: tqdm | None = None

    def __call__(self, event: ProgressEvent) -> None:
        if event.stage is not self._stage:
            self.close()
            self._stage = event.stage
            if event.stage.is_terminal:
                return
            self._bar = tqdm(total=100, desc=event.stage.value, unit="%", leave=False)
        if self._bar is not None:
            self._bar.n = round(max(0.0, min(event.percent, 100.0)), 1)
            self._bar.refresh()

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.stt:
        overrides["stt_provider"] = args.stt
    if args.tts_provider:
        overrides["tts_provider"] = args.tts_provider
    if args.tts_model:
        overrides["tts_model"] = args.tts_model
    if args.voice:
        overrides["tts_voice"] = args.voice
    return replace(settings, **overrides) if overrides else settings


async def main_async(argv: list[str] | None = None) -> int:
    """Main async CLI entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)
    settings = _apply_overrides(load_settings(args.env_file), args)

    missing = settings.missing_tools(soundstretch=args.fit_duration == "soundstretch")
    if args.check_tools:
        if missing:
            logger.error("Missing tools: %s", ", ".join(missing))
            return EXIT_CONFIG
        logger.info("All required tools found")
        return EXIT_OK
    if missing:
        logger.error("Missing tools: %s", ", ".join(missing))
        return EXIT_CONFIG
    if not args.url or not args.target:
        logger.error("A video URL and --target are required")
        return EXIT_CONFIG
    if settings.tts_provider == "elevenlabs" and not (args.voice or settings.elevenlabs_voice_id):
        logger.error("ElevenLabs needs a voice id: pass --voice or set ELEVENLABS_VOICE_ID")
        return EXIT_CONFIG

    collaborators = {
        "voice": SynthesisOptions(voice=settings.tts_voice, model=settings.tts_model, speed=args.speed),
    }
    if args.separate_vocals:
        collaborators["separator"] = DemucsSeparator(python_executable=settings.python_executable)
    if args.fit_duration == "soundstretch":
        collaborators["timing"] = SoundStretchAdjuster(settings.soundstretch_path)
    elif args.fit_duration == "atempo":
        collaborators["timing"] = AtempoAdjuster(settings.ffmpeg_path)

    bars = ProgressBars()
    try:
        outcome = await start_job(
            args.url,
            args.target,
            args.output_dir,
            args.source,
            settings=settings,
            on_progress=bars,
            **collaborators,
        )
    finally:
        bars.close()

    if outcome.success:
        logger.info("Done (dubbed) -> %s", outcome.result_path)
        return EXIT_OK
    logger.error("Failed: %s", outcome.error_message)
    return EXIT_FAILED


def main() -> None:
    """Main CLI entry point."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
