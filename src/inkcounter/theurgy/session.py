"""
Counter Session - What a front end sees of the client.

Wraps a ContractClient and keeps the three things a UI renders: the last
counter value, the last error message and whether an operation is in
flight.  Operations are serialized with a lock, so concurrent callers queue
up instead of interleaving ``ready -> submitting -> ready`` transitions.
Failures never propagate out of the session; they land in ``error``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..errors import CounterError
from ..pneuma.client import ContractClient, TransactionReceipt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CounterView:
    value: Optional[int]
    error: Optional[str]
    in_flight: bool
    mode: Optional[str] = None
    account: Optional[str] = None


class CounterSession:
    def __init__(self, client: ContractClient) -> None:
        self.client = client
        self.value: Optional[int] = None
        self.error: Optional[str] = None
        self.last_error: Optional[CounterError] = None
        self.last_receipt: Optional[TransactionReceipt] = None
        self.in_flight = False
        self._lock = asyncio.Lock()

    @property
    def view(self) -> CounterView:
        return CounterView(
            value=self.value,
            error=self.error,
            in_flight=self.in_flight,
            mode=self.client.mode.value if self.client.mode else None,
            account=self.client.account.address if self.client.account else None,
        )

    async def _run(self, label: str, action: Callable[[], Awaitable[None]]) -> CounterView:
        async with self._lock:
            self.in_flight = True
            self.error = None
            self.last_error = None
            try:
                await action()
            except CounterError as exc:
                logger.warning("%s failed: %s", label, exc)
                self.error = f"{label} failed: {exc}"
                self.last_error = exc
            finally:
                self.in_flight = False
        return self.view

    async def initialize(self) -> CounterView:
        async def action() -> None:
            await self.client.initialize()

        return await self._run("Initialize", action)

    async def connect_wallet(self) -> CounterView:
        async def action() -> None:
            await self.client.connect_wallet()

        return await self._run("Connect wallet", action)

    async def query(self) -> CounterView:
        async def action() -> None:
            snapshot = await self.client.query()
            self.value = snapshot.value

        return await self._run("Query", action)

    async def increment(self, refresh: bool = True) -> CounterView:
        return await self._transact("Increment", self.client.increment, refresh)

    async def decrement(self, refresh: bool = True) -> CounterView:
        return await self._transact("Decrement", self.client.decrement, refresh)

    async def _transact(
        self,
        label: str,
        submit: Callable[[], Awaitable[TransactionReceipt]],
        refresh: bool,
    ) -> CounterView:
        async def action() -> None:
            self.last_receipt = await submit()
            if refresh:
                snapshot = await self.client.refresh()
                self.value = snapshot.value

        return await self._run(label, action)
