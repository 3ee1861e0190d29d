"""Video-related API endpoints."""
import asyncio

from fastapi import APIRouter, status

from bilidl.core.logging import get_logger
from bilidl.models.video import (
    FormatsRequest,
    FormatsResponse,
    SelectionResponse,
    SelectRequest,
)
from bilidl.services.video_service import VideoService

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/formats",
    response_model=FormatsResponse,
    status_code=status.HTTP_200_OK,
    summary="List video formats",
    description="Resolve a BV id or URL and list its DASH representations",
    responses={
        200: {
            "description": "Successfully resolved the video and its formats",
            "model": FormatsResponse,
        },
        400: {"description": "Input could not be resolved"},
        422: {"description": "Validation error"},
        502: {"description": "Upstream request or API call failed"},
    },
)
async def fetch_formats(request: FormatsRequest) -> FormatsResponse:
    """List available formats for a video page.

    Args:
        request: Request containing the input and page

    Returns:
        Resolved ids, title and format rows

    Raises:
        Various BiliDownloaderError exceptions (handled by global handler)
    """
    # Blocking HTTP calls run in a thread to keep the event loop free
    return await asyncio.to_thread(VideoService.fetch_formats, request.input, request.page)


@router.post(
    "/select",
    response_model=SelectionResponse,
    status_code=status.HTTP_200_OK,
    summary="Select streams",
    description="Apply a yt-dlp style format expression and return the picked stream URLs",
    responses={
        200: {"description": "Streams selected", "model": SelectionResponse},
        400: {"description": "Input could not be resolved"},
        404: {"description": "No alternative of the expression is satisfiable"},
        502: {"description": "Upstream request or API call failed"},
    },
)
async def select_streams(request: SelectRequest) -> SelectionResponse:
    """Select the video/audio streams for a format expression.

    Args:
        request: Request containing the input, page and format expression

    Returns:
        The selected streams
    """
    logger.info(f"Selecting '{request.format}' for {request.input} p{request.page}")
    return await asyncio.to_thread(
        VideoService.select, request.input, request.page, request.format
    )
