"""Test configuration and fixtures."""
from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from bilidl.main import create_app
from bilidl.models.video import Dash, DashAudio, DashVideo
from bilidl.services.video_service import VideoService


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app.

    Yields:
        TestClient instance
    """
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def _clear_manifest_cache() -> Generator[None, None, None]:
    """Keep the class-level manifest cache from leaking between tests."""
    VideoService.clear_cache()
    yield
    VideoService.clear_cache()


@pytest.fixture
def sample_dash() -> Dash:
    """Manifest with 2160/1080/720 entries across avc1, av01 and hev1."""
    return Dash(
        video=[
            DashVideo(id=120, base_url="v2160_avc1", codecs="avc1.640032", height=2160, bandwidth=12_000_000),
            DashVideo(id=80, base_url="v1080_av01", codecs="av01.0.08M.10", height=1080, bandwidth=5_000_000),
            DashVideo(id=64, base_url="v720_hev1", codecs="hev1.1.6.L123", height=720, bandwidth=3_000_000),
        ],
        audio=[
            DashAudio(id=30216, base_url="a128", codecs="mp4a.40.2", bandwidth=128_000),
            DashAudio(id=30232, base_url="a320", codecs="mp4a.40.2", bandwidth=320_000),
        ],
    )


def make_response(
    status_code: int = 200,
    json_data: object = None,
    headers: dict[str, str] | None = None,
    chunks: list[bytes] | None = None,
    url: str = "",
) -> MagicMock:
    """Build a ``requests.Response`` stand-in."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.headers = headers or {}
    resp.url = url
    if isinstance(json_data, Exception):
        resp.json.side_effect = json_data
    else:
        resp.json.return_value = json_data
    resp.iter_content.return_value = chunks or []
    return resp
