"""Configuration management."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Library settings, read from ``TILEGRAM_*`` environment variables."""

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format (json or console)")

    # Distribution
    distribute_max_iterations: int = Field(
        default=10000, gt=0, description="Maximum rebalancing passes per distribute call"
    )
    distribute_max_seconds: Optional[float] = Field(
        default=300.0, gt=0, description="Wall-clock budget per distribute call in seconds"
    )

    # Hulls
    hull_tolerance_ratio: float = Field(
        default=0.5, ge=0, description="Default hull snapping tolerance as a fraction of hexagon radius"
    )

    class Config:
        env_prefix = "TILEGRAM_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
