"""Pytest configuration and fixtures."""

import asyncio
import os
from collections import deque
from typing import Callable, Optional, Sequence

import pytest
from bip_utils import Bip32Secp256k1, P2WPKHAddrEncoder
from embit import script
from embit.ec import PublicKey
from embit.psbt import PSBT, DerivationPath
from embit.transaction import Transaction, TransactionInput, TransactionOutput
from fastapi import WebSocketDisconnect

# Set test environment
os.environ["DEBUG"] = "true"

from hwsigner.hdwallet.account import AccountKey
from hwsigner.hdwallet.keypath import KeyPath
from hwsigner.networks import MAINNET
from hwsigner.signing.base import WalletPublicKey
from hwsigner.signing.client import LedgerClient
from hwsigner.signing.transport import WebSocketTransport

SEED = bytes.fromhex("000102030405060708090a0b0c0d0e0f")
OTHER_SEED = bytes.fromhex("fffcf9f6f3f0edeae7e4e1dedbd8d5d2cfccc9c6c3c0bdbab7b4b1aeaba8a5a2")
ACCOUNT_PATH = "m/84'/0'/0'"


# ======================
# Keys
# ======================

@pytest.fixture
def root_ctx():
    """Master private key of the device under test."""
    return Bip32Secp256k1.FromSeed(SEED)


@pytest.fixture
def account_ctx(root_ctx):
    """Account private key at m/84'/0'/0'."""
    return root_ctx.DerivePath(ACCOUNT_PATH)


@pytest.fixture
def account_key(account_ctx) -> AccountKey:
    """Account extended public key as the server knows it."""
    return AccountKey.from_extended_key(account_ctx.PublicKey().ToExtended(), MAINNET)


@pytest.fixture
def root_fingerprint(root_ctx) -> bytes:
    return root_ctx.FingerPrint().ToBytes()


@pytest.fixture
def other_root_ctx():
    """Master key of an unrelated wallet."""
    return Bip32Secp256k1.FromSeed(OTHER_SEED)


def child_pubkey(ctx, path: str) -> PublicKey:
    """Compressed public key at a relative path, as an embit key."""
    return PublicKey.parse(ctx.DerivePath(path).PublicKey().RawCompressed().ToBytes())


def full_path(suffix: str) -> list[int]:
    return list(KeyPath.parse(f"{ACCOUNT_PATH}/{suffix}").indexes)


# ======================
# PSBT builders
# ======================

def txid_for(n: int) -> bytes:
    return bytes([n]) * 32


def make_psbt(num_inputs: int, output_scripts: Sequence) -> PSBT:
    """Build an unsigned PSBT with num_inputs inputs and the given outputs."""
    vin = [TransactionInput(txid_for(i + 1), i) for i in range(num_inputs)]
    vout = [TransactionOutput(10_000 * (i + 1), spk) for i, spk in enumerate(output_scripts)]
    return PSBT(Transaction(vin=vin, vout=vout))


def add_hint(entry, pubkey: PublicKey, fingerprint: bytes, path: list[int]) -> None:
    entry.bip32_derivations[pubkey] = DerivationPath(fingerprint, path)


def add_segwit_utxo(inp, pubkey: PublicKey, amount: int = 50_000) -> None:
    inp.witness_utxo = TransactionOutput(amount, script.p2wpkh(pubkey))


# ======================
# Device doubles
# ======================

class FakeWebSocket:
    """In-memory websocket answering each frame with responder(frame).

    Responses become readable once their frame was sent. close_after makes
    the socket disconnect after that many responses were read.
    """

    def __init__(
        self,
        responder: Optional[Callable[[bytes], bytes]] = None,
        close_after: Optional[int] = None,
        delay: float = 0.0,
    ):
        self.responder = responder or default_responder
        self.close_after = close_after
        self.delay = delay
        self.events: list[str] = []
        self.sent: list[bytes] = []
        self._pending: deque = deque()
        self._received = 0

    async def send_bytes(self, data: bytes) -> None:
        await asyncio.sleep(self.delay)
        self.events.append(f"send:{data.hex()}")
        self.sent.append(data)
        self._pending.append(self.responder(data))

    async def receive_bytes(self) -> bytes:
        await asyncio.sleep(self.delay)
        if self.close_after is not None and self._received >= self.close_after:
            raise WebSocketDisconnect(code=1006)
        self._received += 1
        response = self._pending.popleft()
        self.events.append(f"recv:{response.hex()}")
        return response


def default_responder(apdu: bytes) -> bytes:
    """Firmware query answers 2.1.0, sign commands echo a signature over the key."""
    if len(apdu) < 2:
        return apdu
    if apdu[1] == 0xC4:
        return bytes([0x00, 2, 1, 0]) + b"\x90\x00"
    if apdu[1] == 0x48:
        return b"SIG" + apdu[5:]
    return apdu


def expected_signature(pubkey: PublicKey) -> bytes:
    return b"SIG" + pubkey.sec()


class FakeLedgerClient(LedgerClient):
    """Ledger client double.

    Derives wallet keys from a local master key and sends one frame per
    signature request through the transport.
    """

    def __init__(
        self,
        transport,
        root_ctx=None,
        max_apdu_size: int = 90,
        address_hrp: str = "bc",
        refuse: bool = False,
        skip_keys: Sequence[bytes] = (),
    ):
        super().__init__(transport, max_apdu_size)
        self.root_ctx = root_ctx or Bip32Secp256k1.FromSeed(SEED)
        self.address_hrp = address_hrp
        self.refuse = refuse
        self.skip_keys = set(skip_keys)
        self.sign_calls: list[tuple] = []
        self.pubkey_calls: list[KeyPath] = []

    async def get_firmware_version(self) -> str:
        (response,) = await self.exchange([b"\xe0\xc4\x00\x00\x00"])
        return f"{response[1]}.{response[2]}.{response[3]}"

    async def get_wallet_public_key(self, key_path: KeyPath) -> WalletPublicKey:
        self.pubkey_calls.append(key_path)
        ctx = self.root_ctx if key_path.depth == 0 else self.root_ctx.DerivePath(str(key_path))
        compressed = ctx.PublicKey().RawCompressed().ToBytes()
        return WalletPublicKey(
            public_key=ctx.PublicKey().RawUncompressed().ToBytes(),
            address=P2WPKHAddrEncoder.EncodeKey(compressed, hrp=self.address_hrp),
            chain_code=ctx.ChainCode().ToBytes(),
        )

    async def sign_transaction(self, requests, unsigned_tx, change_path):
        self.sign_calls.append((list(requests), unsigned_tx, change_path))
        if self.refuse:
            return None
        frames = []
        for request in requests:
            data = request.public_key.sec()
            frames.append(b"\xe0\x48\x00\x00" + bytes([len(data)]) + data)
        responses = await self.exchange(frames)
        signatures = []
        for request, response in zip(requests, responses):
            if request.public_key.sec() in self.skip_keys:
                signatures.append(None)
            else:
                signatures.append(response)
        return signatures


@pytest.fixture
def websocket() -> FakeWebSocket:
    return FakeWebSocket()


@pytest.fixture
def transport(websocket) -> WebSocketTransport:
    return WebSocketTransport(websocket)


@pytest.fixture
def ledger_client(transport, root_ctx) -> FakeLedgerClient:
    return FakeLedgerClient(transport, root_ctx=root_ctx)
