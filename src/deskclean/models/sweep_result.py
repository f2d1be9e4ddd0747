"""Sweep request and result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class SweepRequest:
    """One sweep's source and target roots.

    Built fresh for every sweep since the target usually embeds today's date.
    """

    source_root: Path
    target_root: Path


@dataclass(frozen=True, slots=True)
class SweepResult:
    """Outcome of a single sweep."""

    source_root: Path
    target_root: Path
    moved_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    target_created: bool = False
    errors: tuple[str, ...] = ()
    elapsed: float = 0.0

    @property
    def total(self) -> int:
        """Number of entries evaluated during the walk."""
        return self.moved_count + self.skipped_count + self.error_count

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    def to_dict(self) -> dict:
        return {
            "source": str(self.source_root),
            "target": str(self.target_root),
            "moved_count": self.moved_count,
            "skipped_count": self.skipped_count,
            "error_count": self.error_count,
            "target_created": self.target_created,
            "errors": list(self.errors),
            "elapsed": self.elapsed,
        }
