"""Position tracking and the open/monitor/close lifecycle."""

from .positions import (
    InvalidTransitionError,
    Position,
    PositionBook,
    PositionError,
    PositionExistsError,
    PositionNotFoundError,
    PositionState,
)

__all__ = [
    "InvalidTransitionError",
    "Position",
    "PositionBook",
    "PositionError",
    "PositionExistsError",
    "PositionNotFoundError",
    "PositionState",
]
