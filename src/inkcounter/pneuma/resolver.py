"""
Endpoint resolution with sequential, timeout-bounded fallback.

Candidates are tried strictly in order.  Each attempt gets the endpoint's own
timeout; a candidate that fails or times out is closed before the next one
is tried.  The first candidate to become ready wins and the rest are never
contacted.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Sequence

from ..config import Endpoint
from ..errors import NoEndpointAvailable, TransportError
from .rpc import Connection, open_connection

logger = logging.getLogger(__name__)

Connector = Callable[[Endpoint], Connection]


class EndpointResolver:
    def __init__(self, connect: Connector = open_connection) -> None:
        self._connect = connect

    async def resolve(self, endpoints: Sequence[Endpoint]) -> Connection:
        """
        Return a live connection to the first reachable endpoint.

        Args:
            endpoints: Ordered candidates

        Returns:
            An open Connection in the ``live`` state

        Raises:
            NoEndpointAvailable: If every candidate failed (or the list is empty)
        """
        attempted: list[str] = []

        for endpoint in endpoints:
            attempted.append(endpoint.url)
            logger.info("Trying to connect to %s (timeout %.1fs)", endpoint.url, endpoint.timeout)

            try:
                connection = self._connect(endpoint)
            except TransportError as exc:
                logger.warning("Failed to connect to %s: %s", endpoint.url, exc)
                continue

            try:
                await asyncio.wait_for(connection.open(), timeout=endpoint.timeout)
            except asyncio.TimeoutError:
                logger.warning("Failed to connect to %s: timed out after %.1fs", endpoint.url, endpoint.timeout)
                await connection.close()
                continue
            except (TransportError, OSError) as exc:
                logger.warning("Failed to connect to %s: %s", endpoint.url, exc)
                await connection.close()
                continue
            except asyncio.CancelledError:
                await connection.close()
                raise

            logger.info("Connected to %s", endpoint.url)
            return connection

        raise NoEndpointAvailable(attempted)
