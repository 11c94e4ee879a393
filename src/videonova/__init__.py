"""
Videonova - dub an online video into another language.

Given only a URL, the pipeline:
- Downloads the video with yt-dlp
- Extracts its audio with ffmpeg
- Transcribes speech (OpenAI Whisper or local faster-whisper)
- Translates the transcript with GPT
- Synthesizes the translation with OpenAI or ElevenLabs TTS
- Remuxes the dub into the original video
"""

from .jobs import start_job
from .models import Job, JobOutcome, JobResult, PipelineState, ProgressEvent
from .pipeline import PipelineOrchestrator

__version__ = "0.1.0"

__all__ = [
    "Job",
    "JobOutcome",
    "JobResult",
    "PipelineOrchestrator",
    "PipelineState",
    "ProgressEvent",
    "start_job",
]
