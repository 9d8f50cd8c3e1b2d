"""
Pipeline Statistics Module

This module provides the PipelineStats dataclass for tracking a
fingerprinting run.
"""

import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class PipelineStats:
    """Statistics for one fingerprinting run."""

    total_keys: int = 0
    fetched: int = 0
    written: int = 0
    failed: int = 0
    by_type: Counter = field(default_factory=Counter)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    def start(self) -> None:
        self.started_at = time.monotonic()

    def finish(self) -> None:
        self.finished_at = time.monotonic()

    @property
    def elapsed(self) -> float:
        """Seconds between start and finish (or now, while running)."""
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    @property
    def progress_percentage(self) -> float:
        """Calculate overall progress as a percentage."""
        return (self.written / max(self.total_keys, 1)) * 100

    @property
    def keys_per_second(self) -> float:
        return self.written / self.elapsed if self.elapsed > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "total_keys": self.total_keys,
            "fetched": self.fetched,
            "written": self.written,
            "failed": self.failed,
            "by_type": dict(self.by_type),
            "elapsed_seconds": round(self.elapsed, 3),
            "progress_percentage": round(self.progress_percentage, 2),
        }
