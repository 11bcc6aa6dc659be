"""Key resolution for PSBT inputs and outputs.

A PSBT entry carries (fingerprint, path) hints for each public key it
involves. The hints come from whoever assembled the transaction and are not
trusted: a hint is accepted only when deriving the account key along the
non-hardened tail of the hinted path produces exactly the hinted public key.
The fingerprint check is a pre-filter that avoids deriving keys for hints
that obviously belong to another wallet.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from bip_utils import Bip32KeyError
from embit.ec import PublicKey
from embit.psbt import InputScope, OutputScope

from hwsigner.hdwallet.account import AccountKey
from hwsigner.hdwallet.keypath import KeyPath

logger = logging.getLogger(__name__)

PSBTEntry = Union[InputScope, OutputScope]


@dataclass(frozen=True)
class HDKey:
    """Verified association between a PSBT entry and a key path.

    Attributes:
        key_path: Full path claimed by the entry (from the root or account origin)
        public_key: Public key at that path, checked against the account key
    """
    key_path: KeyPath
    public_key: PublicKey


def known_fingerprints(
    account_key: AccountKey,
    root_fingerprint: Optional[bytes] = None,
) -> frozenset[bytes]:
    """Fingerprints a hint may carry to be considered for this account.

    Args:
        account_key: Account extended public key
        root_fingerprint: Optional 4-byte fingerprint of the master key

    Returns:
        Immutable set with the account fingerprint and the root fingerprint
    """
    fingerprints = {account_key.fingerprint}
    if root_fingerprint is not None:
        if len(root_fingerprint) != 4:
            raise ValueError(
                f"Root fingerprint must be 4 bytes, got {len(root_fingerprint)}"
            )
        fingerprints.add(bytes(root_fingerprint))
    return frozenset(fingerprints)


def resolve_hd_key(
    known: frozenset[bytes],
    account_key: AccountKey,
    entry: PSBTEntry,
) -> Optional[HDKey]:
    """Find the key path this account uses for a PSBT entry.

    Args:
        known: Fingerprints from known_fingerprints()
        account_key: Account extended public key
        entry: PSBT input or output scope

    Returns:
        HDKey for the first hint that verifies, None if no hint does.
        Hints are visited in (path, public key) order so the result does
        not depend on how the entry listed them.
    """
    hints = sorted(
        entry.bip32_derivations.items(),
        key=lambda item: (tuple(item[1].derivation), item[0].sec()),
    )
    for public_key, derivation in hints:
        if derivation.fingerprint not in known:
            continue

        key_path = KeyPath(derivation.derivation)
        account_path = key_path.account_key_path()
        try:
            derived = account_key.derive_public_key(account_path)
        except (ValueError, Bip32KeyError) as e:
            logger.debug(f"Cannot derive {account_path} from account key: {e}")
            continue

        # Same fingerprint, different key: a collision with another wallet
        if derived != public_key.sec():
            logger.debug(
                f"Fingerprint {derivation.fingerprint.hex()} matched but "
                f"{key_path} does not derive {public_key.sec().hex()}"
            )
            continue

        return HDKey(key_path=key_path, public_key=public_key)

    return None
