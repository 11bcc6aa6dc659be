"""HD wallet module: key paths, the account key and PSBT key resolution."""

from hwsigner.hdwallet.account import AccountKey
from hwsigner.hdwallet.keypath import KeyPath
from hwsigner.hdwallet.resolver import HDKey, known_fingerprints, resolve_hd_key

__all__ = [
    "AccountKey",
    "HDKey",
    "KeyPath",
    "known_fingerprints",
    "resolve_hd_key",
]
