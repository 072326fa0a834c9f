"""Plotpad - Configuration

All settings come from environment variables with the PLOTPAD_ prefix
(or a local .env file). Defaults reproduce the browser editor this
service grew out of: numpy + matplotlib preloaded, Agg backend, 100 DPI.
"""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PLOTPAD_",
        env_file=".env",
        extra="ignore",
    )

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # Engine bring-up
    PRELOAD_PACKAGES: List[str] = ["numpy", "matplotlib"]
    GRAPHICS_BACKEND: str = "agg"

    # Figure serialization (fixed so identical source gives identical bytes)
    FIGURE_DPI: int = 100
    FIGURE_FORMAT: str = "png"

    # Shown instead of an empty stdout after a successful run
    EMPTY_OUTPUT_PLACEHOLDER: str = "Execution completed"


settings = Settings()
