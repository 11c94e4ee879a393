"""
Error taxonomy for the dubbing pipeline.
"""


class VideonovaError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(VideonovaError):
    """A job or its settings are missing required values."""


class PreconditionError(VideonovaError):
    """A stage's required artifact from an earlier stage is missing or unreadable."""


class SynthesizedAudioMissingError(PreconditionError):
    """The dub was recorded by the synthesizing stage but is gone from disk."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Synthesized audio file not found: {path}")


class CollaboratorError(VideonovaError):
    """An external subsystem (download, transcode, cloud provider) failed."""


class FetchError(CollaboratorError):
    """Metadata or media retrieval failed."""


class InvalidSourceError(FetchError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Invalid URL: {url}")


class FormatUnavailableError(FetchError):
    def __init__(self, format_selector: str):
        self.format_selector = format_selector
        super().__init__(f"Format not available: {format_selector}")


class DownloadFailedError(FetchError):
    def __init__(self, reason: str):
        super().__init__(f"Download failed: {reason}")


class TranscodeError(CollaboratorError):
    """ffmpeg/ffprobe failed or could not be started."""

    def __init__(self, message: str, exit_code: int | None = None, stderr: str = ""):
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message)


class ProviderError(CollaboratorError):
    """A speech-to-text, translation or text-to-speech provider call failed."""


class SeparationError(CollaboratorError):
    pass


class TimingError(CollaboratorError):
    pass


class CleanupError(VideonovaError):
    """Workspace removal failed. Logged, never raised to the caller."""
