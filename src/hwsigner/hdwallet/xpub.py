"""Extended public key assembly from device answers.

The device reports a public key, its chain code and the address it computed
for the key. The server turns this into a BIP32 serialized extended public
key and checks that the reported address is valid for the target network.
"""

from bip_utils import (
    Bip32KeyData,
    Bip32Secp256k1,
    P2PKHAddrEncoder,
    P2SHAddrEncoder,
    P2WPKHAddrEncoder,
    Secp256k1PublicKey,
)

from hwsigner.hdwallet.keypath import KeyPath
from hwsigner.networks import Network

ZERO_FINGERPRINT = b'\x00\x00\x00\x00'


def compress_public_key(public_key: bytes) -> bytes:
    """Return the 33-byte SEC encoding of a compressed or uncompressed key."""
    return Secp256k1PublicKey.FromBytes(bytes(public_key)).RawCompressed().ToBytes()


def fingerprint_of(public_key: bytes) -> bytes:
    """4-byte HASH160 prefix of a public key, as used for BIP32 parents."""
    return Bip32Secp256k1.FromPublicKey(compress_public_key(public_key)).FingerPrint().ToBytes()


def wallet_addresses(public_key: bytes, network: Network) -> set[str]:
    """All single-key addresses for a public key on a network.

    Covers legacy (P2PKH), nested segwit (P2SH-P2WPKH) and native segwit
    (P2WPKH), the formats a Ledger Bitcoin app reports.
    """
    compressed = compress_public_key(public_key)
    return {
        P2PKHAddrEncoder.EncodeKey(compressed, net_ver=network.p2pkh_net_ver),
        P2SHAddrEncoder.EncodeKey(compressed, net_ver=network.p2sh_net_ver),
        P2WPKHAddrEncoder.EncodeKey(compressed, hrp=network.bech32_hrp),
    }


def validate_wallet_address(public_key: bytes, address: str, network: Network) -> None:
    """Check a device-reported address against the public key.

    Raises:
        ValueError: If the address is not an encoding of the key on the network
    """
    if not address:
        raise ValueError("Device reported no address")
    if address not in wallet_addresses(public_key, network):
        raise ValueError(f"Address {address} is not valid for this key on {network.name}")


def build_extended_public_key(
    public_key: bytes,
    chain_code: bytes,
    key_path: KeyPath,
    parent_fingerprint: bytes,
    network: Network,
) -> str:
    """Serialize a BIP32 extended public key.

    Args:
        public_key: Key at key_path (compressed or uncompressed)
        chain_code: 32-byte chain code at key_path
        key_path: Path of the key, gives depth and child index
        parent_fingerprint: Fingerprint of the parent key, zeros when unknown
        network: Network providing the key version bytes

    Returns:
        Base58 extended public key (xpub, tpub)
    """
    key_data = Bip32KeyData(
        chain_code=bytes(chain_code),
        depth=key_path.depth,
        index=key_path.last_index,
        parent_fprint=bytes(parent_fingerprint),
    )
    ctx = Bip32Secp256k1.FromPublicKey(
        compress_public_key(public_key),
        key_data,
        network.key_net_ver,
    )
    return ctx.PublicKey().ToExtended()
