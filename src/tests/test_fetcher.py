"""
Tests for the yt-dlp backed fetcher.
"""

import asyncio
import threading
from pathlib import Path

import pytest
from yt_dlp.utils import DownloadError

from videonova import fetcher as fetcher_mod
from videonova.errors import DownloadFailedError, FetchError, FormatUnavailableError, InvalidSourceError
from videonova.fetcher import YtDlpFetcher, format_available, parse_video_info, select_best_formats
from videonova.models import PipelineState

RAW_INFO = {
    "id": "abc123",
    "title": "Demo Clip",
    "duration": 42,
    "uploader": "someone",
    "language": "en",
    "formats": [
        {"format_id": "18", "ext": "mp4", "vcodec": "avc1", "acodec": "mp4a"},
        {"format_id": "137", "ext": "mp4", "vcodec": "avc1", "acodec": "none", "width": 1920, "height": 1080},
        {"format_id": "136", "ext": "mp4", "vcodec": "avc1", "acodec": "none", "width": 1280, "height": 720},
        {"format_id": "140", "ext": "m4a", "vcodec": "none", "acodec": "mp4a", "audio_channels": 2},
        {"format_id": "139", "ext": "m4a", "vcodec": "none", "acodec": "mp4a", "audio_channels": 1},
    ],
    "subtitles": {"en": [{"ext": "vtt", "url": "https://example.com/en.vtt"}]},
}


class FakeYoutubeDL:
    """Stands in for yt_dlp.YoutubeDL; records options and writes the requested file."""

    instances: list["FakeYoutubeDL"] = []
    error: Exception | None = None
    write_file = True
    info_overrides: dict = {}
    manual_subs: set[str] = set()
    auto_subs: set[str] = set()

    def __init__(self, params):
        self.params = params
        FakeYoutubeDL.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def extract_info(self, url, download=False):
        if FakeYoutubeDL.error is not None:
            raise FakeYoutubeDL.error
        raw = {**RAW_INFO, **FakeYoutubeDL.info_overrides}
        if not download:
            return raw
        if "subtitleslangs" in self.params:
            self._write_subtitles()
            return raw
        path = self.params["outtmpl"].replace("%(ext)s", "mp4")
        if FakeYoutubeDL.write_file:
            Path(path).write_bytes(b"video")
        for hook in self.params.get("progress_hooks", []):
            hook({"status": "downloading", "downloaded_bytes": 50, "total_bytes": 100})
            hook({"status": "finished"})
        return {**raw, "requested_downloads": [{"filepath": path}]}

    def _write_subtitles(self):
        available = FakeYoutubeDL.manual_subs if self.params.get("writesubtitles") else FakeYoutubeDL.auto_subs
        for lang in self.params["subtitleslangs"]:
            if lang in available:
                Path(self.params["outtmpl"].replace("%(ext)s", f"{lang}.srt")).write_text("1\n00:00:00,000 --> 00:00:01,000\nHi\n")

    def prepare_filename(self, info):
        return "unused"


@pytest.fixture
def fake_ydl(monkeypatch):
    FakeYoutubeDL.instances = []
    FakeYoutubeDL.error = None
    FakeYoutubeDL.write_file = True
    FakeYoutubeDL.info_overrides = {}
    FakeYoutubeDL.manual_subs = set()
    FakeYoutubeDL.auto_subs = set()
    monkeypatch.setattr(fetcher_mod, "YoutubeDL", FakeYoutubeDL)
    return FakeYoutubeDL


def test_parse_video_info():
    info = parse_video_info(RAW_INFO)
    assert info.id == "abc123"
    assert info.duration == 42.0
    assert info.original_language == "en"
    assert len(info.formats) == 5
    assert info.has_format("140")
    assert info.subtitles["en"][0].ext == "vtt"
    assert info.automatic_captions == {}


def test_format_available():
    info = parse_video_info(RAW_INFO)
    assert format_available(info, "best/bestvideo+bestaudio")
    assert format_available(info, "137+140")
    assert format_available(info, "999/18")
    assert not format_available(info, "999")
    assert not format_available(info, "137+999")


def test_select_best_formats():
    best = select_best_formats(parse_video_info(RAW_INFO).formats)
    assert best.video_format_id == "137"
    assert best.audio_format_id == "140"


def test_select_best_formats_without_split_streams():
    best = select_best_formats(parse_video_info({**RAW_INFO, "formats": RAW_INFO["formats"][:1]}).formats)
    assert best.video_format_id == "bestvideo+bestaudio/best"
    assert best.audio_format_id == "bestaudio/best"


def test_get_info_is_cached(fake_ydl):
    f = YtDlpFetcher()
    first = asyncio.run(f.get_info("https://www.youtube.com/watch?v=abc123"))
    second = asyncio.run(f.get_info("https://www.youtube.com/watch?v=abc123"))
    assert first is second
    assert len(fake_ydl.instances) == 1
    assert fake_ydl.instances[0].params["skip_download"] is True


@pytest.mark.parametrize("url", ["not a url", "ftp://example.com/v", "https://"])
def test_get_info_rejects_malformed_urls(url, fake_ydl):
    with pytest.raises(InvalidSourceError):
        asyncio.run(YtDlpFetcher().get_info(url))
    assert fake_ydl.instances == []


def test_get_info_maps_unsupported_url(fake_ydl):
    fake_ydl.error = DownloadError("ERROR: Unsupported URL: https://example.com/page")
    with pytest.raises(InvalidSourceError):
        asyncio.run(YtDlpFetcher().get_info("https://example.com/page"))


def test_get_info_maps_other_errors(fake_ydl):
    fake_ydl.error = DownloadError("ERROR: Video unavailable")
    with pytest.raises(FetchError, match="Failed to get video info"):
        asyncio.run(YtDlpFetcher().get_info("https://www.youtube.com/watch?v=gone"))


def test_download_media(fake_ydl, tmp_path):
    progress = []
    destination = str(tmp_path / "dl" / "original_video.%(ext)s")
    path = asyncio.run(
        YtDlpFetcher().download_media(
            "https://www.youtube.com/watch?v=abc123", "best/bestvideo+bestaudio", destination, progress.append
        )
    )

    assert path == str(tmp_path / "dl" / "original_video.mp4")
    assert Path(path).read_bytes() == b"video"
    assert progress == [50.0, 100.0]
    params = fake_ydl.instances[-1].params
    assert params["format"] == "best/bestvideo+bestaudio"
    assert params["merge_output_format"] == "mp4"
    assert params["noplaylist"] is True


def test_download_media_unknown_format(fake_ydl, tmp_path):
    with pytest.raises(FormatUnavailableError, match="Format not available: 999"):
        asyncio.run(
            YtDlpFetcher().download_media(
                "https://www.youtube.com/watch?v=abc123", "999", str(tmp_path / "v.%(ext)s")
            )
        )


def test_download_media_missing_file(fake_ydl, tmp_path):
    fake_ydl.write_file = False
    with pytest.raises(DownloadFailedError):
        asyncio.run(
            YtDlpFetcher().download_media(
                "https://www.youtube.com/watch?v=abc123", "18", str(tmp_path / "v.%(ext)s")
            )
        )


def test_download_media_yt_dlp_error(fake_ydl, tmp_path):
    f = YtDlpFetcher()
    asyncio.run(f.get_info("https://www.youtube.com/watch?v=abc123"))
    fake_ydl.error = DownloadError("ERROR: HTTP Error 403")
    with pytest.raises(DownloadFailedError, match="Download failed"):
        asyncio.run(f.download_media("https://www.youtube.com/watch?v=abc123", "18", str(tmp_path / "v.%(ext)s")))


def test_download_subtitles_absent_returns_none(fake_ydl, tmp_path):
    result = asyncio.run(
        YtDlpFetcher().download_subtitles("https://www.youtube.com/watch?v=abc123", "fr", str(tmp_path / "subs"))
    )
    assert result is None
    writers = [i.params for i in fake_ydl.instances if "subtitleslangs" in i.params]
    assert writers[0].get("writesubtitles") is True
    assert writers[1].get("writeautomaticsub") is True
    assert writers[0]["subtitleslangs"] == ["fr"]


def test_download_subtitles_error_returns_none(fake_ydl, tmp_path):
    fake_ydl.error = DownloadError("ERROR: boom")
    result = asyncio.run(
        YtDlpFetcher().download_subtitles("https://www.youtube.com/watch?v=abc123", "en", str(tmp_path / "subs"))
    )
    assert result is None


def test_best_formats(fake_ydl):
    best = asyncio.run(YtDlpFetcher().best_formats("https://www.youtube.com/watch?v=abc123"))
    assert (best.video_format_id, best.audio_format_id) == ("137", "140")


def test_download_subtitles_prefers_uploaded_track(fake_ydl, tmp_path):
    fake_ydl.manual_subs = {"en"}
    result = asyncio.run(
        YtDlpFetcher().download_subtitles("https://www.youtube.com/watch?v=abc123", "en", str(tmp_path / "clip.mp4"))
    )
    assert result == str(tmp_path / "clip.en.srt")
    assert Path(result).is_file()
    writers = [i.params for i in fake_ydl.instances if "subtitleslangs" in i.params]
    assert len(writers) == 1
    assert writers[0]["outtmpl"] == str(tmp_path / "clip") + ".%(ext)s"


def test_download_subtitles_falls_back_to_automatic_captions(fake_ydl, tmp_path):
    fake_ydl.auto_subs = {"de"}
    result = asyncio.run(
        YtDlpFetcher().download_subtitles("https://www.youtube.com/watch?v=abc123", "de", str(tmp_path / "clip"))
    )
    assert result == str(tmp_path / "clip.de.srt")
    writers = [i.params for i in fake_ydl.instances if "subtitleslangs" in i.params]
    assert [w.get("writeautomaticsub", False) for w in writers] == [False, True]


@pytest.mark.parametrize("detected, expected", [("pt", "pt"), (None, "en")])
def test_download_subtitles_auto_uses_detected_language(detected, expected, fake_ydl, tmp_path):
    fake_ydl.info_overrides = {"language": detected}
    fake_ydl.manual_subs = {expected}
    result = asyncio.run(
        YtDlpFetcher().download_subtitles("https://www.youtube.com/watch?v=abc123", "auto", str(tmp_path / "clip"))
    )
    assert result == str(tmp_path / f"clip.{expected}.srt")
    writers = [i.params for i in fake_ydl.instances if "subtitleslangs" in i.params]
    assert writers[0]["subtitleslangs"] == [expected]


def test_download_audio_only_uses_best_audio_stream(fake_ydl, tmp_path):
    progress = []
    path = asyncio.run(
        YtDlpFetcher().download_audio_only(
            "https://www.youtube.com/watch?v=abc123", str(tmp_path / "audio.%(ext)s"), progress.append
        )
    )
    assert path == str(tmp_path / "audio.mp4")
    assert fake_ydl.instances[-1].params["format"] == "140"
    assert progress == [50.0, 100.0]


def test_download_components(fake_ydl, tmp_path):
    """Video, audio and subtitles land side by side, each reporting its own progress."""
    fake_ydl.manual_subs = {"en"}
    events = []
    out_dir = tmp_path / "parts"

    parts = asyncio.run(
        YtDlpFetcher().download_components(
            "https://www.youtube.com/watch?v=abc123", str(out_dir), "clip", lambda c, p: events.append((c, p))
        )
    )

    assert parts.video_path == str(out_dir / "clip.video.mp4")
    assert parts.audio_path == str(out_dir / "clip.audio.m4a")
    assert parts.subtitle_path == str(out_dir / "clip.en.srt")
    assert parts.info.title == "Demo Clip"
    formats = [i.params["format"] for i in fake_ydl.instances if "format" in i.params]
    assert formats == ["137", "140"]
    assert events == [
        ("video", 50.0),
        ("video", 100.0),
        ("audio", 50.0),
        ("audio", 100.0),
        ("subtitles", 100.0),
    ]


def test_download_components_without_subtitles(fake_ydl, tmp_path):
    events = []
    parts = asyncio.run(
        YtDlpFetcher().download_components(
            "https://www.youtube.com/watch?v=abc123", str(tmp_path), "clip", lambda c, p: events.append((c, p))
        )
    )
    assert parts.subtitle_path is None
    assert events[-1] == ("subtitles", 0.0)


def test_download_progress_arrives_on_event_loop_thread(fake_ydl, make_orchestrator):
    """yt-dlp hooks fire on a worker thread; callers only ever see the loop thread."""
    loop_thread = threading.get_ident()
    events = []

    def record(event):
        events.append((event.stage, event.percent, threading.get_ident()))

    orch = make_orchestrator(fetcher=YtDlpFetcher(), on_progress=record)
    result = asyncio.run(orch.run())

    assert result.final_state is PipelineState.COMPLETED
    download = [(percent, ident) for stage, percent, ident in events if stage is PipelineState.DOWNLOADING]
    assert [percent for percent, _ in download] == [0.0, 50.0, 100.0]
    assert {ident for _, _, ident in events} == {loop_thread}


def test_pinned_download_format_is_checked(fake_ydl, make_orchestrator):
    result = asyncio.run(make_orchestrator(fetcher=YtDlpFetcher(), download_format="999").run())

    assert result.final_state is PipelineState.FAILED
    assert result.error_message == "Format not available: 999"


def test_pinned_download_format_is_passed_to_yt_dlp(fake_ydl, make_orchestrator):
    result = asyncio.run(make_orchestrator(fetcher=YtDlpFetcher(), download_format="137+140").run())

    assert result.final_state is PipelineState.COMPLETED
    assert fake_ydl.instances[-1].params["format"] == "137+140"
