"""Global exception handlers for API errors."""
from fastapi import Request, status
from fastapi.responses import JSONResponse

from bilidl.core.logging import get_logger
from bilidl.models.video import ErrorResponse
from bilidl.services.errors import BiliDownloaderError

logger = get_logger(__name__)


async def bili_downloader_error_handler(
    request: Request, exc: BiliDownloaderError
) -> JSONResponse:
    """Handle all BiliDownloaderError exceptions.

    Args:
        request: FastAPI request
        exc: Domain exception

    Returns:
        JSON response with error details
    """
    # Map exceptions to HTTP status codes
    status_code_map = {
        "RESOLUTION_FAILED": status.HTTP_400_BAD_REQUEST,
        "NO_SUITABLE_STREAMS": status.HTTP_404_NOT_FOUND,
        "TRANSPORT_FAILED": status.HTTP_502_BAD_GATEWAY,
        "DECODE_FAILED": status.HTTP_502_BAD_GATEWAY,
        "API_ERROR": status.HTTP_502_BAD_GATEWAY,
        "DOWNLOAD_FAILED": status.HTTP_502_BAD_GATEWAY,
        "MUX_FAILED": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }

    status_code = status_code_map.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    # Unresolvable input is an expected user error
    if exc.code not in ["RESOLUTION_FAILED"]:
        logger.warning(f"Domain error: {exc.code} - {exc.message}")

    error_response = ErrorResponse(code=exc.code, message=exc.message)

    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions.

    Args:
        request: FastAPI request
        exc: Unexpected exception

    Returns:
        JSON response with generic error
    """
    logger.error(f"Unexpected error: {exc}", exc_info=True)

    error_response = ErrorResponse(
        code="INTERNAL_ERROR",
        message="An unexpected error occurred. Please try again later.",
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(),
    )
