"""Tests for API endpoints."""
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from bilidl.models.video import FormatRow, FormatsResponse, SelectedStream, SelectionResponse
from bilidl.services.errors import NoSuitableStreamsError, ResolutionError, TransportError


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_check(self, client: TestClient) -> None:
        """Test health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data


class TestFormatsEndpoint:
    """Tests for the format listing endpoint."""

    @patch("bilidl.api.v1.endpoints.videos.VideoService.fetch_formats")
    def test_fetch_formats_success(
        self, mock_fetch: MagicMock, client: TestClient
    ) -> None:
        """Test successful format listing."""
        mock_fetch.return_value = FormatsResponse(
            bvid="BV1znWFzGEhi",
            cid=111,
            title="Test Video",
            formats=[
                FormatRow(id=80, kind="video", height=1080, codecs="avc1.640032", bitrate_kbps=4000),
                FormatRow(id=30280, kind="audio", codecs="mp4a.40.2", bitrate_kbps=320),
            ],
        )

        response = client.post(
            "/api/v1/videos/formats",
            json={"input": "  BV1znWFzGEhi ", "page": 2},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Test Video"
        assert [f["id"] for f in data["formats"]] == [80, 30280]
        assert data["formats"][1]["height"] is None
        mock_fetch.assert_called_once_with("BV1znWFzGEhi", 2)

    def test_fetch_formats_empty_input(self, client: TestClient) -> None:
        """Test format listing with empty input."""
        response = client.post("/api/v1/videos/formats", json={"input": ""})
        assert response.status_code == 422

    def test_fetch_formats_invalid_page(self, client: TestClient) -> None:
        """Test rejection of a page number below 1."""
        response = client.post("/api/v1/videos/formats", json={"input": "BV1znWFzGEhi", "page": 0})
        assert response.status_code == 422

    @patch("bilidl.api.v1.endpoints.videos.VideoService.fetch_formats")
    def test_fetch_formats_unresolvable(
        self, mock_fetch: MagicMock, client: TestClient
    ) -> None:
        """Test format listing when the input cannot be resolved."""
        mock_fetch.side_effect = ResolutionError("BV id not found in input or redirect")

        response = client.post("/api/v1/videos/formats", json={"input": "nothing here"})

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "RESOLUTION_FAILED"
        assert "BV id" in data["message"]

    @patch("bilidl.api.v1.endpoints.videos.VideoService.fetch_formats")
    def test_fetch_formats_upstream_failure(
        self, mock_fetch: MagicMock, client: TestClient
    ) -> None:
        """Test upstream transport failures map to 502."""
        mock_fetch.side_effect = TransportError("http status 503")

        response = client.post("/api/v1/videos/formats", json={"input": "BV1znWFzGEhi"})

        assert response.status_code == 502
        assert response.json()["code"] == "TRANSPORT_FAILED"


class TestSelectEndpoint:
    """Tests for the stream selection endpoint."""

    @patch("bilidl.api.v1.endpoints.videos.VideoService.select")
    def test_select_success(self, mock_select: MagicMock, client: TestClient) -> None:
        """Test successful stream selection."""
        mock_select.return_value = SelectionResponse(
            bvid="BV1znWFzGEhi",
            cid=111,
            video=SelectedStream(id=80, codecs="av01.0.08M.10", url="https://cdn/v.m4s", height=1080),
            audio=SelectedStream(id=30280, codecs="mp4a.40.2", url="https://cdn/a.m4s"),
        )

        response = client.post(
            "/api/v1/videos/select",
            json={"input": "BV1znWFzGEhi", "format": "bv[vcodec^=av01]+ba"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["video"]["height"] == 1080
        assert data["audio"]["url"] == "https://cdn/a.m4s"
        mock_select.assert_called_once_with("BV1znWFzGEhi", 1, "bv[vcodec^=av01]+ba")

    @patch("bilidl.api.v1.endpoints.videos.VideoService.select")
    def test_select_default_expression(self, mock_select: MagicMock, client: TestClient) -> None:
        """Test the default format expression is used when none is sent."""
        mock_select.return_value = SelectionResponse(bvid="BV1znWFzGEhi", cid=111)

        client.post("/api/v1/videos/select", json={"input": "BV1znWFzGEhi"})

        assert mock_select.call_args.args[2] == "bestvideo+bestaudio/best"

    @patch("bilidl.api.v1.endpoints.videos.VideoService.select")
    def test_select_nothing_matches(self, mock_select: MagicMock, client: TestClient) -> None:
        """Test an unsatisfiable expression maps to 404."""
        mock_select.side_effect = NoSuitableStreamsError()

        response = client.post(
            "/api/v1/videos/select",
            json={"input": "BV1znWFzGEhi", "format": "bv[height>=4320]"},
        )

        assert response.status_code == 404
        data = response.json()
        assert data["code"] == "NO_SUITABLE_STREAMS"
        assert data["message"] == "No suitable streams found"
