"""Ledger device command layer.

A LedgerClient speaks the Bitcoin app command protocol (firmware query,
wallet public key, transaction signing) on top of a LedgerTransport. The
command encoding is supplied by the device integration; this base class owns
the transport and enforces the APDU size negotiated for the session.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from embit.transaction import Transaction

from hwsigner.hdwallet.keypath import KeyPath
from hwsigner.signing.base import FrameTooLargeError, SignatureRequest, WalletPublicKey
from hwsigner.signing.transport import LedgerTransport

logger = logging.getLogger(__name__)

DEFAULT_MAX_APDU_SIZE = 90


class LedgerClient(ABC):
    """Abstract Ledger Bitcoin app client.

    Subclasses build command frames and call exchange(); they never talk to
    the websocket directly.
    """

    def __init__(self, transport: LedgerTransport, max_apdu_size: int = DEFAULT_MAX_APDU_SIZE):
        if transport is None:
            raise ValueError("transport is required")
        self.transport = transport
        self.max_apdu_size = max_apdu_size

    async def exchange(self, apdus: Sequence[bytes]) -> list[bytes]:
        """Send command frames through the transport.

        Raises:
            FrameTooLargeError: If a frame exceeds max_apdu_size
            ConnectivityError: If the channel closes during the exchange
        """
        for apdu in apdus:
            if len(apdu) > self.max_apdu_size:
                raise FrameTooLargeError(
                    f"APDU of {len(apdu)} bytes exceeds the {self.max_apdu_size} byte limit"
                )
        return await self.transport.exchange(apdus)

    @abstractmethod
    async def get_firmware_version(self) -> str:
        """Get the firmware version of the Bitcoin app."""
        pass

    @abstractmethod
    async def get_wallet_public_key(self, key_path: KeyPath) -> WalletPublicKey:
        """Get the public key, chain code and address at a path."""
        pass

    @abstractmethod
    async def sign_transaction(
        self,
        requests: Sequence[SignatureRequest],
        unsigned_tx: Transaction,
        change_path: Optional[KeyPath],
    ) -> Optional[list[Optional[bytes]]]:
        """Sign the requested inputs of a transaction.

        Args:
            requests: One request per input the device should sign
            unsigned_tx: Unsigned global transaction
            change_path: Path of the change output, shown as change on the device

        Returns:
            One signature (or None) per request, in request order,
            or None if the device signed nothing
        """
        pass
