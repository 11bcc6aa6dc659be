"""Bitcoin network parameters.

Each network carries the BIP32 key versions used to parse and serialize
extended public keys and the address parameters used to check what the
device reports for a derived key.
"""

from dataclasses import dataclass
from enum import Enum

from bip_utils import Bip32KeyNetVersions


class NetworkType(str, Enum):
    """Class of a network."""
    MAINNET = "mainnet"
    TESTNET = "testnet"
    REGTEST = "regtest"


@dataclass(frozen=True)
class Network:
    """Parameters for one network."""

    name: str
    network_type: NetworkType
    key_net_ver: Bip32KeyNetVersions
    p2pkh_net_ver: bytes
    p2sh_net_ver: bytes
    bech32_hrp: str

    @property
    def is_mainnet(self) -> bool:
        return self.network_type == NetworkType.MAINNET


# ======================
# Network definitions
# ======================

MAINNET = Network(
    name="Bitcoin",
    network_type=NetworkType.MAINNET,
    key_net_ver=Bip32KeyNetVersions(
        b'\x04\x88\xb2\x1e',  # xpub
        b'\x04\x88\xad\xe4',  # xprv
    ),
    p2pkh_net_ver=b'\x00',
    p2sh_net_ver=b'\x05',
    bech32_hrp="bc",
)

TESTNET = Network(
    name="BitcoinTestnet",
    network_type=NetworkType.TESTNET,
    key_net_ver=Bip32KeyNetVersions(
        b'\x04\x35\x87\xcf',  # tpub
        b'\x04\x35\x83\x94',  # tprv
    ),
    p2pkh_net_ver=b'\x6f',
    p2sh_net_ver=b'\xc4',
    bech32_hrp="tb",
)

REGTEST = Network(
    name="BitcoinRegtest",
    network_type=NetworkType.REGTEST,
    key_net_ver=TESTNET.key_net_ver,
    p2pkh_net_ver=b'\x6f',
    p2sh_net_ver=b'\xc4',
    bech32_hrp="bcrt",
)

NETWORKS: dict[str, Network] = {
    NetworkType.MAINNET.value: MAINNET,
    NetworkType.TESTNET.value: TESTNET,
    NetworkType.REGTEST.value: REGTEST,
}


def get_network(name: str) -> Network:
    """Get network parameters by name.

    Args:
        name: mainnet, testnet or regtest (case-insensitive)

    Raises:
        ValueError: If the network is unknown
    """
    network = NETWORKS.get(name.lower())
    if network is None:
        raise ValueError(
            f"Unknown network '{name}'. Expected one of {sorted(NETWORKS)}"
        )
    return network
