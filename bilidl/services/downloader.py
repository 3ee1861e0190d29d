"""Resumable, progress-reporting stream downloads."""

import re
from pathlib import Path

import requests

from bilidl.core.config import settings
from bilidl.core.logging import get_logger
from bilidl.services.download_tasks import DownloadJob, JobStatus, ProgressCallback
from bilidl.services.errors import DownloadError

logger = get_logger(__name__)

HTTP_PARTIAL_CONTENT = 206

# "bytes 1000-1999/2000" -> 2000
_CONTENT_RANGE_TOTAL_RE = re.compile(r"/(\d+)\s*$")


def parse_content_range_total(value: str | None) -> int:
    """Return the total size from a ``Content-Range`` header, or 0 if unknown."""
    if not value:
        return 0
    match = _CONTENT_RANGE_TOTAL_RE.search(value)
    return int(match.group(1)) if match else 0


def parse_content_length(value: str | None) -> int:
    if not value or not value.strip().isdigit():
        return 0
    return int(value.strip())


class Downloader:
    """Fetches one representation URL to disk.

    Downloads never retry on their own; a failed job leaves its partial
    file in place so a later ``resume=True`` call can continue it.
    """

    def __init__(
        self,
        user_agent: str | None = None,
        referer: str | None = None,
        session: requests.Session | None = None,
        chunk_size: int | None = None,
    ) -> None:
        if session is None:
            session = requests.Session()
            session.headers.update(
                {
                    "User-Agent": user_agent or settings.USER_AGENT,
                    "Referer": referer or settings.REFERER,
                }
            )
        self.session = session
        self.chunk_size = chunk_size or settings.DOWNLOAD_CHUNK_SIZE
        self.timeout = (settings.CONNECT_TIMEOUT_SECONDS, settings.READ_TIMEOUT_SECONDS)

    def download(
        self,
        url: str,
        destination: str | Path,
        resume: bool = False,
        progress: ProgressCallback | None = None,
    ) -> DownloadJob:
        """Download *url* to *destination*.

        Args:
            url: Stream URL
            destination: Output file path; parent directories are created
            resume: Continue an existing partial file with a ranged request
            progress: Called with the job after every written chunk

        Returns:
            The completed job

        Raises:
            DownloadError: On a non-success status or a transfer failure
        """
        job = DownloadJob(url=url, destination=Path(destination), resume=resume)
        if resume and job.destination.is_file():
            job.existing_bytes = job.destination.stat().st_size

        headers = {}
        if job.existing_bytes > 0:
            headers["Range"] = f"bytes={job.existing_bytes}-"
            logger.info(f"Resuming {job.destination} from byte {job.existing_bytes}")

        job.transition(JobStatus.REQUESTING)
        try:
            resp = self.session.get(url, headers=headers, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            job.fail(f"send error: {e}")
            raise DownloadError(f"download request failed: {e}") from e

        with resp:
            job.http_status = resp.status_code
            if not (200 <= resp.status_code < 300):
                job.fail(f"download status {resp.status_code}")
                raise DownloadError(
                    f"download status {resp.status_code}", status=resp.status_code
                )

            if resp.status_code == HTTP_PARTIAL_CONTENT and "Content-Range" in resp.headers:
                job.total_bytes = parse_content_range_total(resp.headers.get("Content-Range"))
            else:
                job.total_bytes = parse_content_length(resp.headers.get("Content-Length"))

            try:
                job.destination.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.debug(f"Could not create {job.destination.parent}: {e}")

            if job.is_appending:
                mode = "ab"
                job.downloaded_bytes = job.existing_bytes
            else:
                mode = "wb"
                job.downloaded_bytes = 0

            job.transition(JobStatus.STREAMING)
            try:
                with open(job.destination, mode) as f:
                    for chunk in resp.iter_content(chunk_size=self.chunk_size):
                        if not chunk:
                            continue
                        f.write(chunk)
                        job.downloaded_bytes += len(chunk)
                        if progress is not None:
                            progress(job)
                    f.flush()
            except (requests.RequestException, OSError) as e:
                job.fail(f"read chunk: {e}")
                raise DownloadError(f"download interrupted: {e}") from e

        job.transition(JobStatus.COMPLETED)
        logger.info(
            f"Downloaded {job.destination} ({job.downloaded_bytes} bytes, total {job.total_bytes})"
        )
        return job
