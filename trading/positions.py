"""In-memory table of open positions, at most one per token address."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class PositionState(str, Enum):
    NONE = "NONE"
    OPENING = "OPENING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


class PositionError(Exception):
    """Base class for position table errors."""


class PositionExistsError(PositionError):
    def __init__(self, token_address: str, state: PositionState):
        super().__init__(f"Token {token_address} already has a position in state {state.value}")
        self.token_address = token_address
        self.state = state


class PositionNotFoundError(PositionError):
    def __init__(self, token_address: str):
        super().__init__(f"No position tracked for token {token_address}")
        self.token_address = token_address


class InvalidTransitionError(PositionError):
    def __init__(self, token_address: str, current: PositionState, target: PositionState):
        super().__init__(f"Cannot move {token_address} from {current.value} to {target.value}")
        self.token_address = token_address
        self.current = current
        self.target = target


@dataclass
class Position:
    token_address: str
    symbol: str
    buy_venue: str
    sell_venue: str
    amount: float
    buy_price: float
    buy_tx_hash: str
    buy_block_number: Optional[int]
    opened_at: float

    def profit_percent(self, unit_price: float) -> float:
        """Profit of the whole position at ``unit_price`` relative to its USD cost."""
        return (unit_price * self.amount - self.buy_price) / self.buy_price * 100


@dataclass
class _Entry:
    state: PositionState
    position: Optional[Position] = None


class PositionBook:
    """Tracks the lifecycle state of each token; the sole authority on which positions are live.

    Every mutation checks the current state first, so a token can never hold two
    positions and a live position is never silently overwritten.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}

    @staticmethod
    def _key(token_address: str) -> str:
        return token_address.lower()

    def state(self, token_address: str) -> PositionState:
        entry = self._entries.get(self._key(token_address))
        return entry.state if entry else PositionState.NONE

    def reserve(self, token_address: str) -> None:
        """NONE -> OPENING."""
        current = self.state(token_address)
        if current is not PositionState.NONE:
            raise PositionExistsError(token_address, current)
        self._entries[self._key(token_address)] = _Entry(PositionState.OPENING)

    def release(self, token_address: str) -> None:
        """OPENING -> NONE, used when the opening trade does not confirm."""
        current = self.state(token_address)
        if current is not PositionState.OPENING:
            raise InvalidTransitionError(token_address, current, PositionState.NONE)
        del self._entries[self._key(token_address)]

    def open(self, token_address: str, position: Position) -> None:
        """OPENING -> OPEN. Opening directly from NONE is allowed."""
        current = self.state(token_address)
        if current not in (PositionState.NONE, PositionState.OPENING):
            raise PositionExistsError(token_address, current)
        self._entries[self._key(token_address)] = _Entry(PositionState.OPEN, position)

    def get(self, token_address: str) -> Optional[Position]:
        entry = self._entries.get(self._key(token_address))
        return entry.position if entry else None

    def begin_close(self, token_address: str) -> Position:
        """OPEN -> CLOSING."""
        entry = self._entries.get(self._key(token_address))
        if entry is None:
            raise PositionNotFoundError(token_address)
        if entry.state is not PositionState.OPEN:
            raise InvalidTransitionError(token_address, entry.state, PositionState.CLOSING)
        entry.state = PositionState.CLOSING
        return entry.position

    def close(self, token_address: str) -> Position:
        """CLOSING (or OPEN) -> CLOSED; the entry is removed and the token returns to NONE."""
        entry = self._entries.get(self._key(token_address))
        if entry is None:
            raise PositionNotFoundError(token_address)
        if entry.state not in (PositionState.OPEN, PositionState.CLOSING):
            raise InvalidTransitionError(token_address, entry.state, PositionState.CLOSED)
        del self._entries[self._key(token_address)]
        return entry.position

    def open_positions(self) -> list[Position]:
        return [e.position for e in self._entries.values() if e.position is not None]

    def __contains__(self, token_address: str) -> bool:
        return self._key(token_address) in self._entries

    def __len__(self) -> int:
        return len(self._entries)
