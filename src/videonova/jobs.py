"""
The one operation a UI or CLI calls to dub a video.
"""

import logging

from .config import Settings, load_settings
from .errors import ConfigurationError
from .models import AUTO_LANGUAGE, Job, JobOutcome
from .pipeline import PipelineOrchestrator, ProgressCallback

logger = logging.getLogger("videonova")


async def start_job(
    url: str,
    target_language: str,
    output_directory: str | None,
    source_language: str | None = AUTO_LANGUAGE,
    *,
    credential: str | None = None,
    settings: Settings | None = None,
    on_progress: ProgressCallback | None = None,
    **collaborators,
) -> JobOutcome:
    """
    Validate the request, run one job to completion and report its outcome.

    Missing fields are rejected before any workspace is created. Remaining
    keyword arguments (`fetcher`, `transcoder`, `services`, `separator`,
    `timing`, `voice`, `download_format`) are handed to the orchestrator.
    """
    settings = settings or load_settings()
    try:
        if not (url or "").strip():
            raise ConfigurationError("Video URL is required.")
        if not (target_language or "").strip():
            raise ConfigurationError("Target language is required.")
        output_directory = output_directory or settings.output_dir
        if not (output_directory or "").strip():
            raise ConfigurationError("Output folder path is required.")
        job = Job(
            source_url=url.strip(),
            target_language=target_language.strip(),
            output_directory=output_directory,
            credential=credential or settings.openai_api_key or "",
            source_language=(source_language or AUTO_LANGUAGE).strip(),
        )
        orchestrator = PipelineOrchestrator(
            job, settings=settings, on_progress=on_progress, **collaborators
        )
    except ConfigurationError as e:
        logger.error("Job rejected: %s", e)
        return JobOutcome(success=False, error_message=str(e))

    result = await orchestrator.run()
    return JobOutcome.from_result(result)
