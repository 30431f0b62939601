import os
from dataclasses import dataclass

DEFAULT_KEY_CHUNK_SIZE = 20


@dataclass(frozen=True)
class Config:
    database_url: str
    log_format: str = "json"
    log_level: str = "INFO"
    key_chunk_size: int = DEFAULT_KEY_CHUNK_SIZE

    @classmethod
    def from_env(cls) -> "Config":
        database_url = os.environ.get("DATABASE_URL", "").strip()
        if not database_url:
            raise RuntimeError("DATABASE_URL must be set")

        key_chunk_size = int(os.environ.get("ROLLUP_KEY_CHUNK_SIZE", DEFAULT_KEY_CHUNK_SIZE))
        if key_chunk_size < 1:
            raise RuntimeError("ROLLUP_KEY_CHUNK_SIZE must be at least 1")

        return cls(
            database_url=database_url,
            log_format=os.environ.get("ROLLUP_LOG_FORMAT", "json"),
            log_level=os.environ.get("ROLLUP_LOG_LEVEL", "INFO").upper(),
            key_chunk_size=key_chunk_size,
        )
