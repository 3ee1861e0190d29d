"""Domain-specific exceptions for the services layer."""


class BiliDownloaderError(Exception):
    """Base exception for downloader errors."""

    def __init__(self, message: str, code: str) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message
            code: Stable error code for API responses and CLI output
        """
        self.message = message
        self.code = code
        super().__init__(message)


class ResolutionError(BiliDownloaderError):
    """Raised when an input cannot be resolved to a video, page or signing key."""

    def __init__(self, message: str = "Could not resolve the requested video") -> None:
        super().__init__(message, "RESOLUTION_FAILED")


class TransportError(BiliDownloaderError):
    """Raised when an HTTP request keeps failing after all retry attempts."""

    def __init__(self, message: str = "Request failed") -> None:
        super().__init__(message, "TRANSPORT_FAILED")


class DecodeError(BiliDownloaderError):
    """Raised when a successful response does not match the expected schema."""

    def __init__(self, message: str = "Unexpected response payload") -> None:
        super().__init__(message, "DECODE_FAILED")


class ApiError(BiliDownloaderError):
    """Raised when the platform reports a non-zero status inside a 200 response."""

    def __init__(self, api_code: int, api_message: str | None = None) -> None:
        self.api_code = api_code
        self.api_message = api_message or ""
        super().__init__(
            f"playurl api error code {api_code}: {self.api_message}", "API_ERROR"
        )


class NoSuitableStreamsError(BiliDownloaderError):
    """Raised when no filter alternative yields a usable pick."""

    def __init__(self, message: str = "No suitable streams found") -> None:
        super().__init__(message, "NO_SUITABLE_STREAMS")


class DownloadError(BiliDownloaderError):
    """Raised when a stream transfer fails."""

    def __init__(self, message: str = "Download failed", status: int | None = None) -> None:
        self.status = status
        super().__init__(message, "DOWNLOAD_FAILED")


class MuxError(BiliDownloaderError):
    """Raised when ffmpeg is missing or exits with an error."""

    def __init__(self, message: str = "ffmpeg mux failed") -> None:
        super().__init__(message, "MUX_FAILED")
