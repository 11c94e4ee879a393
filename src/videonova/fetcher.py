"""
Video metadata and media download via yt-dlp.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from yt_dlp import YoutubeDL
from yt_dlp.utils import YoutubeDLError

from .errors import (
    DownloadFailedError,
    FetchError,
    FormatUnavailableError,
    InvalidSourceError,
    VideonovaError,
)
from .interfaces import ComponentCallback, PercentCallback
from .io_ffmpeg import ensure_dir
from .models import (
    AUTO_LANGUAGE,
    BestFormats,
    DownloadedComponents,
    SubtitleTrack,
    VideoFormat,
    VideoInfo,
)

logger = logging.getLogger("videonova")

BEST_COMBINED = "bestvideo+bestaudio/best"
BEST_AUDIO = "bestaudio/best"
_INVALID_URL_MARKERS = ("Unsupported URL", "is not a valid URL", "invalid URL")


def _tracks(raw: dict[str, Any] | None) -> dict[str, list[SubtitleTrack]]:
    out: dict[str, list[SubtitleTrack]] = {}
    for lang, entries in (raw or {}).items():
        out[lang] = [
            SubtitleTrack(ext=e.get("ext", ""), url=e.get("url", ""), name=e.get("name"))
            for e in entries or []
        ]
    return out


def parse_video_info(raw: dict[str, Any]) -> VideoInfo:
    """Map the yt-dlp info dict onto VideoInfo."""
    formats = tuple(
        VideoFormat(
            format_id=str(f.get("format_id", "")),
            ext=f.get("ext") or "",
            format_note=f.get("format_note"),
            resolution=f.get("resolution"),
            width=f.get("width"),
            height=f.get("height"),
            filesize=f.get("filesize"),
            fps=f.get("fps"),
            vcodec=f.get("vcodec"),
            acodec=f.get("acodec"),
            audio_channels=f.get("audio_channels"),
        )
        for f in raw.get("formats") or []
    )
    return VideoInfo(
        id=str(raw.get("id", "")),
        title=raw.get("title") or "",
        duration=float(raw.get("duration") or 0),
        uploader=raw.get("uploader") or "",
        description=raw.get("description") or "",
        thumbnail=raw.get("thumbnail") or "",
        upload_date=raw.get("upload_date") or "",
        formats=formats,
        subtitles=_tracks(raw.get("subtitles")),
        automatic_captions=_tracks(raw.get("automatic_captions")),
        original_language=raw.get("language"),
    )


def format_available(info: VideoInfo, format_selector: str) -> bool:
    """
    True if yt-dlp can satisfy the selector from the listed formats.

    Any selector naming a `best*` wildcard is accepted. Otherwise at least one
    `/`-separated alternative must have all of its `+`-joined ids listed.
    """
    if "best" in format_selector:
        return True
    for alternative in format_selector.split("/"):
        ids = [part.strip() for part in alternative.split("+") if part.strip()]
        if ids and all(info.has_format(fid) for fid in ids):
            return True
    return False


def select_best_formats(formats: tuple[VideoFormat, ...]) -> BestFormats:
    """Highest-resolution video-only and highest-channel audio-only streams."""
    video = [f for f in formats if f.is_video_only]
    audio = [f for f in formats if f.is_audio_only]
    if not video or not audio:
        return BestFormats(video_format_id=BEST_COMBINED, audio_format_id=BEST_AUDIO)
    video.sort(key=lambda f: (f.width or 0) * (f.height or 0), reverse=True)
    audio.sort(key=lambda f: f.audio_channels or 0, reverse=True)
    return BestFormats(
        video_format_id=video[0].format_id or "bestvideo",
        audio_format_id=audio[0].format_id or "bestaudio",
    )


def _progress_hook(on_progress: PercentCallback | None, loop: asyncio.AbstractEventLoop):
    """yt-dlp calls hooks on its worker thread; percentages are handed back to `loop`."""

    def report(percent: float) -> None:
        loop.call_soon_threadsafe(on_progress, percent)

    def hook(d: dict[str, Any]) -> None:
        if on_progress is None:
            return
        status = d.get("status")
        if status == "downloading":
            total = d.get("total_bytes") or d.get("total_bytes_estimate")
            if total:
                report(min(100.0 * (d.get("downloaded_bytes") or 0) / total, 100.0))
        elif status == "finished":
            report(100.0)

    return hook


def _strip_extension(path: str) -> str:
    return re.sub(r"\.[^/.\\]+$", "", path)


class YtDlpFetcher:
    """MediaFetcher backed by the yt_dlp library; blocking calls run in a worker thread."""

    def __init__(self, options: dict[str, Any] | None = None):
        self.options = {"quiet": True, "no_warnings": True, "noplaylist": True, **(options or {})}
        self._info: dict[str, VideoInfo] = {}

    def _extract(self, url: str, opts: dict[str, Any], download: bool) -> tuple[dict[str, Any], str]:
        with YoutubeDL({**self.options, **opts}) as ydl:
            raw = ydl.extract_info(url, download=download)
            if not raw:
                raise FetchError(f"yt-dlp returned no information for {url}")
            downloads = raw.get("requested_downloads") or []
            if downloads and downloads[0].get("filepath"):
                return raw, downloads[0]["filepath"]
            return raw, ydl.prepare_filename(raw)

    async def get_info(self, url: str) -> VideoInfo:
        """Resolve a URL to its metadata. Cached per fetcher instance."""
        if url in self._info:
            return self._info[url]
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidSourceError(url)
        try:
            raw, _ = await asyncio.to_thread(self._extract, url, {"skip_download": True}, False)
        except YoutubeDLError as e:
            if any(marker in str(e) for marker in _INVALID_URL_MARKERS):
                raise InvalidSourceError(url) from e
            raise FetchError(f"Failed to get video info: {e}") from e
        info = parse_video_info(raw)
        self._info[url] = info
        logger.info("Resolved %s: %r (%.0fs, %d formats)", info.id, info.title, info.duration, len(info.formats))
        return info

    async def download_media(
        self,
        url: str,
        format_selector: str,
        destination: str,
        on_progress: PercentCallback | None = None,
    ) -> str:
        """
        Download `format_selector` to `destination` and return the written path.

        `destination` may carry a yt-dlp `%(ext)s` placeholder, in which case the
        real extension is only known after the download.
        """
        info = await self.get_info(url)
        if not format_available(info, format_selector):
            raise FormatUnavailableError(format_selector)
        ensure_dir(str(Path(destination).parent))
        opts = {
            "format": format_selector,
            "outtmpl": destination,
            "merge_output_format": "mp4",
            "progress_hooks": [_progress_hook(on_progress, asyncio.get_running_loop())],
        }
        logger.info("Downloading %s (format %s)", url, format_selector)
        try:
            _, path = await asyncio.to_thread(self._extract, url, opts, True)
        except YoutubeDLError as e:
            raise DownloadFailedError(str(e)) from e
        if not Path(path).is_file():
            raise DownloadFailedError(f"yt-dlp reported {path} but no file was written")
        return path

    async def download_audio_only(
        self, url: str, destination: str, on_progress: PercentCallback | None = None
    ) -> str:
        best = await self.best_formats(url)
        return await self.download_media(url, best.audio_format_id, destination, on_progress)

    async def download_subtitles(self, url: str, language: str, destination: str) -> str | None:
        """
        Fetch subtitles as SRT, trying uploaded subtitles before automatic captions.

        Returns None when the video has no track in `language`.
        """
        try:
            lang = language
            if language == AUTO_LANGUAGE:
                info = await self.get_info(url)
                lang = info.original_language or "en"
            base = _strip_extension(destination)
            ensure_dir(str(Path(base).parent))
            expected = f"{base}.{lang}.srt"
            for writer in ("writesubtitles", "writeautomaticsub"):
                opts = {
                    "skip_download": True,
                    writer: True,
                    "subtitleslangs": [lang],
                    "subtitlesformat": "srt/best",
                    "outtmpl": f"{base}.%(ext)s",
                    "postprocessors": [{"key": "FFmpegSubtitlesConvertor", "format": "srt"}],
                }
                await asyncio.to_thread(self._extract, url, opts, True)
                if Path(expected).is_file():
                    return expected
            return None
        except (VideonovaError, YoutubeDLError, OSError) as e:
            logger.warning("No subtitles available for language %s: %s", language, e)
            return None

    async def best_formats(self, url: str) -> BestFormats:
        info = await self.get_info(url)
        return select_best_formats(info.formats)

    async def download_components(
        self,
        url: str,
        output_dir: str,
        basename: str,
        on_progress: ComponentCallback | None = None,
    ) -> DownloadedComponents:
        """Download video, audio and original-language subtitles as separate files."""

        def relay(component: str):
            def _cb(percent: float) -> None:
                if on_progress is not None:
                    on_progress(component, percent)

            return _cb

        info = await self.get_info(url)
        ensure_dir(output_dir)
        best = await self.best_formats(url)

        video_path = await self.download_media(
            url, best.video_format_id, str(Path(output_dir) / f"{basename}.video.mp4"), relay("video")
        )
        audio_path = await self.download_media(
            url, best.audio_format_id, str(Path(output_dir) / f"{basename}.audio.m4a"), relay("audio")
        )
        subtitle_path = await self.download_subtitles(
            url, info.original_language or AUTO_LANGUAGE, str(Path(output_dir) / basename)
        )
        relay("subtitles")(100.0 if subtitle_path else 0.0)
        return DownloadedComponents(
            video_path=video_path, audio_path=audio_path, subtitle_path=subtitle_path, info=info
        )
