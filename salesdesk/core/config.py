"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """SalesDesk settings loaded from environment / .env file.

    All settings can be overridden via environment variables prefixed with
    ``SALESDESK_`` or a `.env` file (case-insensitive).

    Attributes:
        api_base_url: Root of the sales management REST API (``.../api/v1``).
        api_token: Bearer token sent with every API request.
        feedback_page_size: Rows per page on the feedback board.
        playback_poll_interval: Seconds between registry reconciliation polls.
    """

    model_config = SettingsConfigDict(
        env_prefix="SALESDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- REST API ---
    api_base_url: str = "http://localhost:5000/api/v1"
    api_token: str = ""  # Issued by the auth service; empty = anonymous
    request_timeout: float = 10.0  # Seconds, matches the dashboard's axios timeout
    upload_timeout: float = 120.0  # Raw PUT of audio bytes to object storage

    # --- Feedback board ---
    feedback_page_size: int = 10
    playback_poll_interval: float = 1.0  # Bounded poll used to reconcile rows

    # --- Recording ---
    recording_sample_rate: int = 16000
    recording_channels: int = 1
    recording_file_name: str = "recording.wav"
    recording_content_type: str = "audio/wav"

    # --- Validation ---
    notes_max_length: int = 1000  # Same limit the API enforces

    # --- Application ---
    log_level: str = "INFO"  # Python logging level


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings singleton.

    Uses ``functools.lru_cache`` so the .env file is read only once.
    Subsequent calls return the same ``Settings`` instance.

    Returns:
        Settings: The application-wide configuration object.
    """
    return Settings()
