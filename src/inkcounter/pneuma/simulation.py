"""
Simulation Fallback - Local stand-in for the counter contract.

Used when no live chain path is available so the client stays usable
offline.  The counter lives in a ``SimulatedState`` object that the caller
owns: hand the same state to several fallbacks to share one counter, or let
each fallback create its own.  Nothing is persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import TransactionRejected
from .selectors import DECREMENT, GET, INCREMENT, INT32_MAX, INT32_MIN, encode_counter

logger = logging.getLogger(__name__)


@dataclass
class SimulatedState:
    value: int = 0


class SimulationFallback:
    def __init__(self, state: SimulatedState | None = None) -> None:
        self.state = state if state is not None else SimulatedState()

    def read(self) -> int:
        return self.state.value

    def increment(self) -> int:
        return self._set(self.state.value + 1)

    def decrement(self) -> int:
        return self._set(self.state.value - 1)

    def apply(self, op: str) -> int:
        """Run a contract message by name against the local state."""
        if op == INCREMENT:
            return self.increment()
        if op == DECREMENT:
            return self.decrement()
        if op == GET:
            return self.read()
        raise ValueError(f"Operation {op!r} cannot be simulated")

    def reset(self, value: int = 0) -> int:
        """Constructor semantics: start over at ``value``."""
        encode_counter(value)
        self.state.value = value
        logger.debug("Simulated counter reset to %d", value)
        return value

    def _set(self, value: int) -> int:
        # The contract uses checked i32 arithmetic, so overflow reverts.
        if not INT32_MIN <= value <= INT32_MAX:
            raise TransactionRejected(f"Counter overflow: {value} is outside the i32 range")
        self.state.value = value
        logger.debug("Simulated counter is now %d", value)
        return value
