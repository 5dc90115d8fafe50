# ssecast/server/config.py
"""Server configuration with sensible defaults for LAN use."""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server settings, overridable via environment variables."""

    # Channels
    HISTORY_SIZE: int = 500
    EMPTY_TIMEOUT_MS: int = 60_000

    # Connections
    PING: bool = True
    PING_INTERVAL_MS: int = 50_000
    CONNECTION_TIMEOUT_MS: int = 0
    MAX_BUFFERED_FRAMES: int = 1024

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8090
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="SSECAST_", env_file=".env", extra="ignore")

    @model_validator(mode="after")
    def buffer_fits_replay(self) -> "Settings":
        # A full replay is queued before the stream starts draining
        if self.MAX_BUFFERED_FRAMES > 0 and self.HISTORY_SIZE >= self.MAX_BUFFERED_FRAMES:
            raise ValueError(
                f"MAX_BUFFERED_FRAMES ({self.MAX_BUFFERED_FRAMES}) must exceed "
                f"HISTORY_SIZE ({self.HISTORY_SIZE}) or be 0"
            )
        return self


settings = Settings()
