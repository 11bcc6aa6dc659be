"""Byte transport between the server and a Ledger device.

The Ledger is plugged into the user's machine; the browser relays APDU
frames between the device and a websocket opened to this server. One device
processes one command stream at a time, so every exchange holds the
transport lock for its whole send/receive round trip.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Sequence

from fastapi import WebSocket, WebSocketDisconnect

from hwsigner.signing.base import ConnectivityError, HardwareWalletError

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_BUFFER_SIZE = 300


class LedgerTransport(ABC):
    """Abstract duplex frame exchange with a device."""

    @abstractmethod
    async def exchange(self, apdus: Sequence[bytes]) -> list[bytes]:
        """Send a batch of frames and return one response per frame, in order.

        Raises:
            ConnectivityError: If the channel closes during the exchange
        """
        pass

    async def close(self) -> None:
        pass


class WebSocketTransport(LedgerTransport):
    """Transport over a websocket relayed by the browser.

    All frames of a batch are sent before any response is read. The lock is
    held across the whole batch so two callers never interleave frames.
    Task cancellation aborts the pending send or receive and releases the lock.

    Example:
        transport = WebSocketTransport(websocket)
        responses = await transport.exchange([apdu1, apdu2])
    """

    def __init__(
        self,
        websocket: WebSocket,
        response_buffer_size: int = DEFAULT_RESPONSE_BUFFER_SIZE,
    ):
        if websocket is None:
            raise ValueError("websocket is required")
        self.websocket = websocket
        self.response_buffer_size = response_buffer_size
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def locked(self) -> bool:
        """Whether an exchange is in flight."""
        return self._lock.locked()

    async def exchange(self, apdus: Sequence[bytes]) -> list[bytes]:
        """Send all frames, then read exactly as many responses."""
        async with self._lock:
            logger.debug(f"Transport lock acquired for {len(apdus)} frame(s)")
            try:
                if self._closed:
                    raise ConnectivityError("Ledger transport is closed")

                for apdu in apdus:
                    await self.websocket.send_bytes(bytes(apdu))

                responses: list[bytes] = []
                for _ in apdus:
                    response = await self.websocket.receive_bytes()
                    if len(response) > self.response_buffer_size:
                        raise HardwareWalletError(
                            f"Ledger response of {len(response)} bytes exceeds the "
                            f"{self.response_buffer_size} byte read buffer"
                        )
                    responses.append(bytes(response))
                return responses

            except WebSocketDisconnect as e:
                logger.warning(f"Ledger websocket disconnected (code {e.code})")
                raise ConnectivityError(
                    f"Ledger connection closed during exchange (code {e.code})"
                ) from e
            except RuntimeError as e:
                # Starlette raises RuntimeError when sending on a closed socket
                logger.warning(f"Ledger websocket unusable: {e}")
                raise ConnectivityError(f"Ledger connection unusable: {e}") from e
            except KeyError as e:
                # Starlette raises KeyError when a text frame arrives on receive_bytes
                logger.warning(f"Ledger websocket sent a non-binary frame: {e}")
                raise ConnectivityError("Ledger connection sent a non-binary frame") from e
            finally:
                logger.debug("Releasing transport lock")

    async def close(self) -> None:
        """Refuse further exchanges. The websocket itself belongs to the caller."""
        self._closed = True
