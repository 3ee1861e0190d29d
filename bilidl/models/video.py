"""Pydantic models for platform payloads and API contracts."""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Platform payloads (view / nav / playurl)
# ---------------------------------------------------------------------------


class DashVideo(BaseModel):
    """One video representation in a DASH manifest."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    base_url: str = Field(..., alias="baseUrl")
    codecs: str
    height: int | None = None
    bandwidth: int | None = None


class DashAudio(BaseModel):
    """One audio representation in a DASH manifest."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    base_url: str = Field(..., alias="baseUrl")
    codecs: str
    bandwidth: int | None = None


class Dash(BaseModel):
    """Available audio/video representations for one content id."""

    video: list[DashVideo]
    audio: list[DashAudio] | None = None


class PlayUrlData(BaseModel):
    dash: Dash | None = None


class PlayUrlResponse(BaseModel):
    """Envelope returned by the signed playurl endpoint."""

    code: int
    message: str | None = None
    data: PlayUrlData | None = None


class ViewPage(BaseModel):
    cid: int
    page: int | None = None
    part: str | None = None


class ViewData(BaseModel):
    title: str
    pages: list[ViewPage]


class ViewResponse(BaseModel):
    """Envelope returned by the video metadata endpoint."""

    code: int | None = None
    message: str | None = None
    data: ViewData | None = None


class WbiImg(BaseModel):
    img_url: str | None = None
    sub_url: str | None = None


class NavData(BaseModel):
    wbi_img: WbiImg | None = None


class NavResponse(BaseModel):
    """Envelope returned by the navigation endpoint."""

    data: NavData | None = None


# ---------------------------------------------------------------------------
# API contracts
# ---------------------------------------------------------------------------


class FormatsRequest(BaseModel):
    """Request model for listing the formats of a video."""

    input: str = Field(
        ...,
        description="BV id or a full Bilibili URL",
        min_length=1,
        max_length=2048,
        examples=["BV1znWFzGEhi", "https://www.bilibili.com/video/BV1znWFzGEhi?p=2"],
    )
    page: int = Field(
        default=1,
        description="Page number (1-based) for multi-part videos",
        ge=1,
    )

    @field_validator("input")
    @classmethod
    def validate_input(cls, v: str) -> str:
        """Ensure input is not blank."""
        v = v.strip()
        if not v:
            raise ValueError("Input cannot be empty")
        return v


class SelectRequest(FormatsRequest):
    """Request model for selecting streams with a format expression."""

    format: str = Field(
        default="bestvideo+bestaudio/best",
        description="yt-dlp style format selection expression",
        min_length=1,
        max_length=200,
        examples=["bestvideo[height<=1080][vcodec^=av01]+bestaudio/best", "ba"],
    )


class FormatRow(BaseModel):
    """One row of the format listing."""

    id: int = Field(..., description="Representation id")
    kind: Literal["video", "audio"]
    height: int | None = Field(default=None, description="Pixel height (video only)")
    codecs: str
    bitrate_kbps: int = Field(default=0, ge=0)


class FormatsResponse(BaseModel):
    """Resolved video with its available representations."""

    bvid: str
    cid: int
    title: str
    formats: list[FormatRow]


class SelectedStream(BaseModel):
    id: int
    codecs: str
    url: str
    height: int | None = None


class SelectionResponse(BaseModel):
    """Streams picked for a format expression."""

    bvid: str
    cid: int
    video: SelectedStream | None = None
    audio: SelectedStream | None = None


class ErrorResponse(BaseModel):
    """Standard error response model."""

    code: Literal[
        "RESOLUTION_FAILED",
        "TRANSPORT_FAILED",
        "DECODE_FAILED",
        "API_ERROR",
        "NO_SUITABLE_STREAMS",
        "DOWNLOAD_FAILED",
        "MUX_FAILED",
        "INTERNAL_ERROR",
    ] = Field(
        ...,
        description="Stable error code for programmatic handling",
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        min_length=1,
    )


class HealthResponse(BaseModel):
    """Health check response model."""

    status: Literal["healthy", "unhealthy"] = Field(
        default="healthy",
        description="Health status of the service",
    )
    version: str = Field(
        default="0.1.0",
        description="API version",
    )
