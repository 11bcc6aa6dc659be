"""Ledger service factory.

Wires a websocket, the transport and the device client together using the
session limits from settings.
"""

import logging
from typing import Callable, Optional

from fastapi import WebSocket

from hwsigner.config import Settings, get_settings
from hwsigner.signing.client import LedgerClient
from hwsigner.signing.ledger import LedgerHardwareWalletService
from hwsigner.signing.transport import LedgerTransport, WebSocketTransport

logger = logging.getLogger(__name__)

LedgerClientFactory = Callable[[LedgerTransport, int], LedgerClient]


def create_ledger_service(
    websocket: WebSocket,
    client_factory: LedgerClientFactory,
    settings: Optional[Settings] = None,
) -> LedgerHardwareWalletService:
    """Create a Ledger service bound to one websocket.

    Args:
        websocket: Accepted websocket relaying frames to the device
        client_factory: Builds the device client from (transport, max_apdu_size)
        settings: Settings to use, defaults to get_settings()

    Returns:
        LedgerHardwareWalletService owning a fresh transport
    """
    if websocket is None:
        raise ValueError("websocket is required")
    settings = settings or get_settings()

    transport = WebSocketTransport(
        websocket,
        response_buffer_size=settings.response_buffer_size,
    )
    client = client_factory(transport, settings.max_apdu_size)
    logger.info(
        f"Created Ledger service ({client.__class__.__name__}, "
        f"max APDU {settings.max_apdu_size} bytes, network {settings.network})"
    )
    return LedgerHardwareWalletService(client)
