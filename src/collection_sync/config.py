from pydantic import field_validator
from pydantic_settings import BaseSettings

from collection_sync.sync.engine import MAX_FETCH_ROWS


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Source
    source_database_url: str

    # Destination
    destination_api_url: str
    destination_api_key: str
    destination_collection_id: str

    # State database
    state_database_url: str = "sqlite+aiosqlite:///./collection_sync.db"

    # Sync
    fetch_limit: int = MAX_FETCH_ROWS

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"

    @field_validator("fetch_limit")
    @classmethod
    def _cap_fetch_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("fetch_limit must be positive")
        return min(value, MAX_FETCH_ROWS)
