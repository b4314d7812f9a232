"""Quality worker configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

from .cache import DEFAULT_KEY_PREFIX


@dataclass(frozen=True)
class WorkerConfig:
    """Configuración del worker de calidad: polling, batch y concurrencia."""
    polling_interval_seconds: float = 30.0
    completed_threshold_minutes: float = 5.0
    batch_size: int = 10
    max_concurrency: int = 5
    startup_delay_seconds: float = 5.0
    redis_key_prefix: str = DEFAULT_KEY_PREFIX
    once: bool = False

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        for name in ("polling_interval_seconds", "completed_threshold_minutes", "startup_delay_seconds"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")

    @classmethod
    def from_env(cls) -> "WorkerConfig":
        return cls(
            polling_interval_seconds=float(os.getenv("QC_POLLING_INTERVAL_SECONDS", "30")),
            completed_threshold_minutes=float(os.getenv("QC_COMPLETED_THRESHOLD_MINUTES", "5")),
            batch_size=int(os.getenv("QC_BATCH_SIZE", "10")),
            max_concurrency=int(os.getenv("QC_MAX_CONCURRENCY", "5")),
            startup_delay_seconds=float(os.getenv("QC_STARTUP_DELAY_SECONDS", "5")),
            redis_key_prefix=os.getenv("QC_REDIS_KEY_PREFIX", DEFAULT_KEY_PREFIX),
        )

    def with_overrides(self, **overrides) -> "WorkerConfig":
        """Copy with the non-None overrides applied (CLI flags)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
