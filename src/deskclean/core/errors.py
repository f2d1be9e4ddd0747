"""Sweep error taxonomy."""

from __future__ import annotations

from pathlib import Path

from deskclean.models.sweep_result import SweepResult


class SweepError(Exception):
    """Base class for sweep failures.

    Carries the partial result accumulated before the failure so callers
    can still report what happened.
    """

    kind = "sweep_error"

    def __init__(self, message: str, source_root: Path, target_root: Path, result: SweepResult | None = None) -> None:
        super().__init__(message)
        self.source_root = source_root
        self.target_root = target_root
        self.result = result or SweepResult(source_root=source_root, target_root=target_root)


class SourceUnreadable(SweepError):
    """Raised when the source root cannot be listed. Nothing was attempted."""

    kind = "source_unreadable"


class TargetCreationFailed(SweepError):
    """Raised when the target root cannot be created on first use."""

    kind = "target_creation_failed"


class EntryRelocationFailed(SweepError):
    """A single entry could not be renamed.

    Handled inside the walk and folded into the result's error count;
    never propagated out of ``SweepExecutor.sweep``.
    """

    kind = "entry_relocation_failed"

    def __init__(self, message: str, source_root: Path, target_root: Path, entry: Path) -> None:
        super().__init__(message, source_root, target_root)
        self.entry = entry
