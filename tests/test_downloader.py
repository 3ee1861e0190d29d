"""Tests for the download engine."""
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

from bilidl.services.download_tasks import DownloadJob, JobStatus
from bilidl.services.downloader import Downloader, parse_content_range_total
from bilidl.services.errors import DownloadError
from tests.conftest import make_response


def _downloader(*responses: object) -> Downloader:
    session = MagicMock()
    session.get.side_effect = list(responses)
    return Downloader(session=session, chunk_size=4)


class TestContentRange:
    """Tests for Content-Range parsing."""

    def test_total(self) -> None:
        """Test the total is read from Content-Range."""
        assert parse_content_range_total("bytes 1000-1999/2000") == 2000

    def test_unknown_total(self) -> None:
        """Test unknown or missing totals."""
        assert parse_content_range_total("bytes 0-99/*") == 0
        assert parse_content_range_total(None) == 0


class TestDownload:
    """Tests for full and resumed downloads."""

    def test_full_download(self, tmp_path: Path) -> None:
        """Test a full download into new directories."""
        dest = tmp_path / "nested" / "dir" / "video.m4s"
        dl = _downloader(
            make_response(headers={"Content-Length": "8"}, chunks=[b"abcd", b"", b"efgh"])
        )
        seen: list[int] = []

        job = dl.download("https://cdn/v.m4s", dest, progress=lambda j: seen.append(j.downloaded_bytes))

        assert dest.read_bytes() == b"abcdefgh"
        assert job.status is JobStatus.COMPLETED
        assert job.total_bytes == 8
        assert seen == [4, 8]
        assert dl.session.get.call_args.kwargs["headers"] == {}

    def test_missing_length_is_unknown(self, tmp_path: Path) -> None:
        """Test a response without Content-Length."""
        dl = _downloader(make_response(chunks=[b"xy"]))
        job = dl.download("https://cdn/a.m4s", tmp_path / "a.m4s")
        assert job.total_bytes == 0
        assert job.progress == 0.0

    def test_resume_appends_from_existing_length(self, tmp_path: Path) -> None:
        """Test a 206 resume appends after the existing bytes."""
        dest = tmp_path / "video.m4s"
        dest.write_bytes(b"a" * 1000)
        dl = _downloader(
            make_response(
                status_code=206,
                headers={"Content-Range": "bytes 1000-1999/2000"},
                chunks=[b"b" * 600, b"b" * 400],
            )
        )
        seen: list[int] = []

        job = dl.download("https://cdn/v.m4s", dest, resume=True, progress=lambda j: seen.append(j.downloaded_bytes))

        assert dl.session.get.call_args.kwargs["headers"] == {"Range": "bytes=1000-"}
        assert job.total_bytes == 2000
        assert job.existing_bytes == 1000
        assert seen == [1600, 2000]
        data = dest.read_bytes()
        assert len(data) == 2000
        assert data[:1000] == b"a" * 1000
        assert job.progress == 100.0

    def test_resume_ignored_by_server_truncates(self, tmp_path: Path) -> None:
        """Test a 200 answer to a ranged request rewrites the file."""
        dest = tmp_path / "video.m4s"
        dest.write_bytes(b"old-partial")
        dl = _downloader(make_response(status_code=200, headers={"Content-Length": "3"}, chunks=[b"new"]))

        job = dl.download("https://cdn/v.m4s", dest, resume=True)

        assert dest.read_bytes() == b"new"
        assert job.total_bytes == 3

    def test_no_resume_ignores_existing_file(self, tmp_path: Path) -> None:
        """Test an existing file is overwritten without resume."""
        dest = tmp_path / "video.m4s"
        dest.write_bytes(b"old")
        dl = _downloader(make_response(chunks=[b"fresh"]))

        dl.download("https://cdn/v.m4s", dest)

        assert dl.session.get.call_args.kwargs["headers"] == {}
        assert dest.read_bytes() == b"fresh"

    def test_error_status_keeps_partial_file(self, tmp_path: Path) -> None:
        """Test an error status leaves the partial file untouched."""
        dest = tmp_path / "video.m4s"
        dest.write_bytes(b"partial")
        dl = _downloader(make_response(status_code=403))

        with pytest.raises(DownloadError) as exc_info:
            dl.download("https://cdn/v.m4s", dest, resume=True)

        assert exc_info.value.status == 403
        assert dest.read_bytes() == b"partial"

    def test_transport_failure(self, tmp_path: Path) -> None:
        """Test a transport failure is not retried."""
        dl = _downloader(requests.ConnectionError("refused"))
        with pytest.raises(DownloadError, match="refused"):
            dl.download("https://cdn/v.m4s", tmp_path / "v.m4s")
        assert dl.session.get.call_count == 1


class TestDownloadJob:
    """Tests for the job state machine."""

    def test_transitions(self, tmp_path: Path) -> None:
        """Test the normal job lifecycle."""
        job = DownloadJob(url="u", destination=tmp_path / "x")
        job.transition(JobStatus.REQUESTING)
        job.transition(JobStatus.STREAMING)
        job.transition(JobStatus.COMPLETED)
        assert job.finished_at is not None

    def test_invalid_transition(self, tmp_path: Path) -> None:
        """Test an illegal status change."""
        job = DownloadJob(url="u", destination=tmp_path / "x")
        with pytest.raises(RuntimeError):
            job.transition(JobStatus.COMPLETED)
