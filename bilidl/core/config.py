"""Application configuration using pydantic-settings."""
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    ENV: Literal["development", "production", "test"] = "development"
    PORT: int = Field(default=8000, ge=1, le=65535)

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"

    # CORS Configuration
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Platform endpoints
    VIEW_URL: str = "https://api.bilibili.com/x/web-interface/view"
    NAV_URL: str = "https://api.bilibili.com/x/web-interface/nav"
    PLAYURL_URL: str = "https://api.bilibili.com/x/player/wbi/playurl"

    # HTTP client
    USER_AGENT: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent header sent with every request",
    )
    REFERER: str = Field(
        default="https://www.bilibili.com",
        description="Referer header sent with every request",
    )
    PROXY: str | None = Field(
        default=None,
        description="HTTP/HTTPS/SOCKS proxy URL (e.g., http://127.0.0.1:7890)",
    )
    CONNECT_TIMEOUT_SECONDS: float = Field(default=10, gt=0, le=300)
    READ_TIMEOUT_SECONDS: float = Field(default=30, gt=0, le=600)
    RETRY_DELAYS_MS: str = Field(
        default="0,500,1500",
        description="Comma-separated delays before each JSON request attempt",
    )

    # Playurl defaults
    DEFAULT_FNVAL: int = Field(
        default=4048,
        ge=0,
        description="fnval flags for playurl; 4048 requests DASH",
    )

    # Downloads
    DOWNLOAD_CHUNK_SIZE: int = Field(
        default=65536,
        ge=1024,
        le=67108864,
        description="Chunk size for streamed response reads",
    )
    MERGE_OUTPUT_FORMAT: Literal["mp4", "mkv"] = "mp4"
    FFMPEG_PATH: str = Field(
        default="ffmpeg",
        description="ffmpeg executable used for muxing",
    )

    # Cache formats between /formats and /select
    FORMATS_CACHE_TTL_SECONDS: int = Field(
        default=600,
        ge=0,
        le=3600,
        description="TTL for in-memory formats cache (0 disables)",
    )
    FORMATS_CACHE_MAXSIZE: int = Field(
        default=128,
        ge=0,
        le=2048,
        description="Max number of cached videos (0 disables)",
    )

    @field_validator("CORS_ORIGINS")
    @classmethod
    def parse_cors_origins(cls, v: str) -> str:
        """Ensure CORS_ORIGINS is properly formatted."""
        return v.strip()

    @field_validator("RETRY_DELAYS_MS")
    @classmethod
    def validate_retry_delays(cls, v: str) -> str:
        """Ensure RETRY_DELAYS_MS is a non-empty list of non-negative integers."""
        parts = [p.strip() for p in v.split(",") if p.strip()]
        if not parts or not all(p.isdigit() for p in parts):
            raise ValueError("RETRY_DELAYS_MS must be comma-separated non-negative integers")
        return ",".join(parts)

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def retry_delays(self) -> tuple[float, ...]:
        """Get retry delays in seconds, one per attempt."""
        return tuple(int(ms) / 1000 for ms in self.RETRY_DELAYS_MS.split(","))

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENV == "production"


# Global settings instance
settings = Settings()
