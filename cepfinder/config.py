"""
Runtime configuration.

Values come from CEPFINDER_* environment variables (optionally loaded from a
.env file) and fall back to the defaults below.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .env import load_env

ENV_PREFIX = "CEPFINDER_"


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


@dataclass(frozen=True)
class Settings:
    http_timeout_s: float = 5.0
    http_max_retries: int = 0
    http_backoff_base_s: float = 0.5
    cache_ttl_s: float = 300.0
    batch_chunk_size: int = 10
    batch_concurrency: int = 5
    batch_throttle_s: float = 0.2
    health_reference_cep: str = "01001000"
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "Settings":
        load_env()
        log_dir = _env("LOG_DIR", "")
        return cls(
            http_timeout_s=float(_env("HTTP_TIMEOUT_S", "5.0")),
            http_max_retries=int(_env("HTTP_MAX_RETRIES", "0")),
            http_backoff_base_s=float(_env("HTTP_BACKOFF_BASE_S", "0.5")),
            cache_ttl_s=float(_env("CACHE_TTL_S", "300")),
            batch_chunk_size=int(_env("BATCH_CHUNK_SIZE", "10")),
            batch_concurrency=int(_env("BATCH_CONCURRENCY", "5")),
            batch_throttle_s=float(_env("BATCH_THROTTLE_S", "0.2")),
            health_reference_cep=_env("HEALTH_REFERENCE_CEP", "01001000"),
            log_level=_env("LOG_LEVEL", "INFO"),
            log_dir=Path(log_dir) if log_dir else None,
        )


settings = Settings.from_env()
