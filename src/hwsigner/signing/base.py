"""Base interfaces for hardware wallet signing.

Signing flow:
1. Resolve which PSBT inputs (and which change output) belong to the account
2. Build one signature request per resolved input
3. Device signs over the transport (private keys never leave the device)
4. Merge returned signatures into a copy of the PSBT
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from embit.ec import PublicKey
from embit.psbt import PSBT
from embit.transaction import Transaction, TransactionOutput

from hwsigner.hdwallet.account import AccountKey
from hwsigner.hdwallet.keypath import KeyPath
from hwsigner.networks import Network

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignableCoin:
    """Output being spent by a PSBT input.

    Attributes:
        txid: Id of the transaction holding the output
        vout: Index of the output in that transaction
        utxo: The output itself (amount and script), None when the PSBT lacks it
    """
    txid: bytes
    vout: int
    utxo: Optional[TransactionOutput] = None

    @property
    def outpoint(self) -> tuple[bytes, int]:
        return (self.txid, self.vout)


@dataclass
class SignatureRequest:
    """Request for the device to sign one input.

    Attributes:
        input_coin: Coin spent by the input
        input_transaction: Full previous transaction, needed for legacy inputs
        key_path: Path the device derives the signing key from
        public_key: Expected public key at key_path
        signature: DER signature with sighash byte, set after signing
    """
    input_coin: SignableCoin
    input_transaction: Optional[Transaction]
    key_path: KeyPath
    public_key: PublicKey
    signature: Optional[bytes] = None


@dataclass(frozen=True)
class WalletPublicKey:
    """Device answer to a wallet public key query.

    Attributes:
        public_key: SEC public key (Ledger reports it uncompressed)
        address: Address the device computed for the key
        chain_code: 32-byte BIP32 chain code
    """
    public_key: bytes
    address: str
    chain_code: bytes


@dataclass
class LedgerTestResult:
    """Result of a device responsiveness check."""
    success: bool
    firmware_version: Optional[str] = None


class HardwareWalletService(ABC):
    """Abstract base class for hardware wallet services.

    Implementations NEVER see private keys. They only exchange public keys,
    transactions and signatures with the device.
    """

    @property
    @abstractmethod
    def device(self) -> str:
        """Human readable device name."""
        pass

    @abstractmethod
    async def test(self) -> LedgerTestResult:
        """Check that the device answers."""
        pass

    @abstractmethod
    async def get_ext_pub_key(self, network: Network, key_path: KeyPath) -> str:
        """Get the serialized extended public key at a path.

        Args:
            network: Network whose key versions and addresses apply
            key_path: Account path, usually m/purpose'/coin'/account'

        Returns:
            Base58 extended public key
        """
        pass

    @abstractmethod
    async def get_pub_key(self, network: Network, key_path: KeyPath) -> bytes:
        """Get the compressed public key at a path."""
        pass

    @abstractmethod
    async def sign_transaction(
        self,
        psbt: PSBT,
        root_fingerprint: Optional[bytes],
        account_key: AccountKey,
        change_hint: Optional[bytes] = None,
    ) -> PSBT:
        """Sign the inputs of a PSBT that belong to an account.

        Args:
            psbt: Partially signed transaction, left unchanged
            root_fingerprint: Optional 4-byte master key fingerprint
            account_key: Account extended public key
            change_hint: Optional scriptPubKey of the change output

        Returns:
            Copy of the PSBT with the device's partial signatures added
        """
        pass

    async def close(self) -> None:
        """Release the device channel."""
        pass

    async def __aenter__(self) -> "HardwareWalletService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(device={self.device})"


class HardwareWalletError(Exception):
    """Exception raised when a hardware wallet operation fails."""
    pass


class ConnectivityError(HardwareWalletError):
    """Exception raised when the device channel closes during an exchange."""
    pass


class FrameTooLargeError(HardwareWalletError):
    """Exception raised when an outbound frame exceeds the APDU size limit."""
    pass


class UnsupportedAppError(HardwareWalletError):
    """Exception raised when the device app does not support the network."""
    pass


class SigningRefusedError(HardwareWalletError):
    """Exception raised when the device returns no signatures."""
    pass
