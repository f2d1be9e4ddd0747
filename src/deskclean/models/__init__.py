"""DeskClean data models."""

from deskclean.models.sweep_result import SweepRequest, SweepResult

__all__ = [
    "SweepRequest",
    "SweepResult",
]
