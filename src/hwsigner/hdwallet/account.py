"""Account extended public key.

The account key is the only key material the server holds. It is used to
recognise which PSBT entries belong to this wallet by deriving the
non-hardened change/index tail of their paths.

Security: Only the xpub is used - private keys are NEVER stored or transmitted.
"""

import logging

from bip_utils import Bip32Secp256k1

from hwsigner.hdwallet.keypath import KeyPath
from hwsigner.networks import Network

logger = logging.getLogger(__name__)


class AccountKey:
    """Extended public key of a signing account.

    Example:
        account = AccountKey.from_extended_key("xpub...", MAINNET)
        account.derive_public_key(KeyPath([0, 5]))  # 33-byte compressed key
    """

    def __init__(self, bip32_ctx: Bip32Secp256k1, network: Network):
        if not bip32_ctx.IsPublicOnly():
            # Keep nothing but the public half
            bip32_ctx = Bip32Secp256k1.FromExtendedKey(
                bip32_ctx.PublicKey().ToExtended(), network.key_net_ver
            )
        self._ctx = bip32_ctx
        self._network = network

    @classmethod
    def from_extended_key(cls, xpub: str, network: Network) -> "AccountKey":
        """Parse an extended public key serialized for the given network.

        Raises:
            ValueError: If the key is malformed or not a public key
        """
        try:
            ctx = Bip32Secp256k1.FromExtendedKey(xpub, network.key_net_ver)
        except Exception as e:
            raise ValueError(f"Invalid extended public key for {network.name}: {e}") from e
        if not ctx.IsPublicOnly():
            raise ValueError("Expected an extended public key, got a private key")
        return cls(ctx, network)

    @property
    def network(self) -> Network:
        return self._network

    @property
    def depth(self) -> int:
        return self._ctx.Depth().ToInt()

    @property
    def public_key(self) -> bytes:
        """Compressed SEC public key."""
        return self._ctx.PublicKey().RawCompressed().ToBytes()

    @property
    def fingerprint(self) -> bytes:
        """4-byte HASH160 prefix of the public key."""
        return self._ctx.FingerPrint().ToBytes()

    def derive_public_key(self, path: KeyPath) -> bytes:
        """Derive the compressed public key along a non-hardened path.

        Raises:
            ValueError: If the path contains a hardened index
        """
        ctx = self._ctx
        for index in path:
            if KeyPath.is_hardened(index):
                raise ValueError(f"Cannot derive hardened index from a public key: {path}")
            ctx = ctx.ChildKey(index)
        return ctx.PublicKey().RawCompressed().ToBytes()

    def to_extended(self) -> str:
        return self._ctx.PublicKey().ToExtended()

    def __eq__(self, other) -> bool:
        if not isinstance(other, AccountKey):
            return NotImplemented
        return self.to_extended() == other.to_extended()

    def __hash__(self) -> int:
        return hash(self.to_extended())

    def __repr__(self) -> str:
        return f"AccountKey(fingerprint={self.fingerprint.hex()}, network={self._network.name})"
