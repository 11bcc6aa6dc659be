"""Hardware wallet signing services.

Provides:
- WebSocketTransport: serialized frame exchange with the device
- LedgerClient: device command layer interface
- LedgerHardwareWalletService: PSBT signing with a Ledger
"""

from hwsigner.signing.base import (
    ConnectivityError,
    FrameTooLargeError,
    HardwareWalletError,
    HardwareWalletService,
    LedgerTestResult,
    SignableCoin,
    SignatureRequest,
    SigningRefusedError,
    UnsupportedAppError,
    WalletPublicKey,
)
from hwsigner.signing.client import LedgerClient
from hwsigner.signing.factory import create_ledger_service
from hwsigner.signing.ledger import LedgerHardwareWalletService
from hwsigner.signing.transport import LedgerTransport, WebSocketTransport

__all__ = [
    "ConnectivityError",
    "FrameTooLargeError",
    "HardwareWalletError",
    "HardwareWalletService",
    "LedgerClient",
    "LedgerHardwareWalletService",
    "LedgerTestResult",
    "LedgerTransport",
    "SignableCoin",
    "SignatureRequest",
    "SigningRefusedError",
    "UnsupportedAppError",
    "WalletPublicKey",
    "WebSocketTransport",
    "create_ledger_service",
]
