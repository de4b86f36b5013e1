"""
Seed progress reporting

The seed loader emits progress events; it never renders them. A CLI or log
adapter subscribes by implementing SeedProgressObserver.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass
class SeedLoadStats:
    """Counters for one seed loader run."""
    files_total: int = 0
    files_done: int = 0
    items_total: int = 0
    items_done: int = 0
    inserted: int = 0
    skipped: int = 0
    errors: int = 0
    item_errors: int = 0
    asset_failures: int = 0
    aborted: bool = False
    skip_reason: Optional[str] = None
    error_samples: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def record_error(self, message: str) -> None:
        self.errors += 1
        if len(self.error_samples) < 10:
            self.error_samples.append(message)

    @property
    def duration_seconds(self) -> float:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files_total": self.files_total,
            "files_done": self.files_done,
            "items_total": self.items_total,
            "items_done": self.items_done,
            "inserted": self.inserted,
            "skipped": self.skipped,
            "errors": self.errors,
            "item_errors": self.item_errors,
            "asset_failures": self.asset_failures,
            "aborted": self.aborted,
            "skip_reason": self.skip_reason,
            "error_samples": self.error_samples[:10],
            "duration_seconds": round(self.duration_seconds, 2),
        }


class SeedProgressObserver(Protocol):
    def on_file_progress(self, done: int, total: int, filename: str) -> None:
        ...

    def on_item_progress(self, done: int, total: int, filename: str) -> None:
        ...

    def on_complete(self, stats: SeedLoadStats) -> None:
        ...


class NullProgressObserver:
    """Discards all progress events."""

    def on_file_progress(self, done: int, total: int, filename: str) -> None:
        pass

    def on_item_progress(self, done: int, total: int, filename: str) -> None:
        pass

    def on_complete(self, stats: SeedLoadStats) -> None:
        pass


class LoggingProgressObserver:
    """Writes progress lines to the log every `file_interval` files."""

    def __init__(self, file_interval: int = 100, log: Optional[logging.Logger] = None):
        self.file_interval = max(1, file_interval)
        self.log = log or logger

    def on_file_progress(self, done: int, total: int, filename: str) -> None:
        if done == total or done % self.file_interval == 0:
            pct = (done / total * 100) if total else 100.0
            self.log.info(f"[codex_seed] Files {done}/{total} ({pct:.0f}%) - last: {filename}")

    def on_item_progress(self, done: int, total: int, filename: str) -> None:
        self.log.debug(f"[codex_seed] {filename}: item {done}/{total}")

    def on_complete(self, stats: SeedLoadStats) -> None:
        self.log.info(
            f"[codex_seed] Finished {stats.files_done}/{stats.files_total} files, "
            f"{stats.items_done} items"
        )
