"""Ledger hardware wallet service.

Signs PSBTs with a Ledger reached over a browser-relayed websocket. The
server only knows the account extended public key (and optionally the root
fingerprint); the device holds the private keys.

Only inputs whose key hints verify against the account key are sent to the
device. Inputs belonging to other participants (multisig co-signers,
coinjoin peers) are left untouched.
"""

import copy
import logging
from typing import Optional, Union

from embit.psbt import PSBT, InputScope
from embit.script import Script

from hwsigner.hdwallet.account import AccountKey
from hwsigner.hdwallet.keypath import KeyPath
from hwsigner.hdwallet.resolver import known_fingerprints, resolve_hd_key
from hwsigner.hdwallet.xpub import (
    ZERO_FINGERPRINT,
    build_extended_public_key,
    compress_public_key,
    fingerprint_of,
    validate_wallet_address,
)
from hwsigner.networks import Network
from hwsigner.signing.base import (
    HardwareWalletError,
    HardwareWalletService,
    LedgerTestResult,
    SignableCoin,
    SignatureRequest,
    SigningRefusedError,
    UnsupportedAppError,
)
from hwsigner.signing.client import LedgerClient

logger = logging.getLogger(__name__)


class LedgerHardwareWalletService(HardwareWalletService):
    """Hardware wallet service backed by a Ledger Bitcoin app.

    Owns one LedgerClient and, through it, one transport. Do not share the
    transport with another service.

    Example:
        async with LedgerHardwareWalletService(client) as ledger:
            xpub = await ledger.get_ext_pub_key(MAINNET, KeyPath.parse("m/84'/0'/0'"))
            signed = await ledger.sign_transaction(psbt, root_fp, account_key)
    """

    def __init__(self, client: LedgerClient):
        if client is None:
            raise ValueError("client is required")
        self._client = client

    @property
    def client(self) -> LedgerClient:
        return self._client

    @property
    def device(self) -> str:
        return "Ledger wallet"

    async def test(self) -> LedgerTestResult:
        """Query the firmware version; any failure propagates."""
        version = await self._client.get_firmware_version()
        logger.debug(f"Ledger firmware version {version}")
        return LedgerTestResult(success=True, firmware_version=version)

    async def get_ext_pub_key(
        self,
        network: Network,
        key_path: KeyPath,
        include_parent_fingerprint: bool = True,
    ) -> str:
        """Get the extended public key at a path from the device.

        The address reported by the device must be valid on the network. A
        failure is fatal on mainnet, where it means the open app targets
        another coin. On test networks it is logged and ignored because some
        apps only format mainnet addresses.

        Raises:
            UnsupportedAppError: If the address does not validate on mainnet
        """
        if network is None:
            raise ValueError("network is required")
        key_path = KeyPath.parse(key_path)

        wallet_key = await self._client.get_wallet_public_key(key_path)
        try:
            validate_wallet_address(wallet_key.public_key, wallet_key.address, network)
        except ValueError as e:
            if network.is_mainnet:
                raise UnsupportedAppError(
                    f"The opened ledger app does not seem to support {network.name}."
                ) from e
            logger.warning(
                f"Ignoring address validation failure on {network.name} for {key_path}: {e}"
            )

        parent_fingerprint = ZERO_FINGERPRINT
        if include_parent_fingerprint and key_path.depth > 0:
            parent_key = await self._client.get_wallet_public_key(key_path.parent)
            parent_fingerprint = fingerprint_of(parent_key.public_key)

        return build_extended_public_key(
            wallet_key.public_key,
            wallet_key.chain_code,
            key_path,
            parent_fingerprint,
            network,
        )

    async def get_pub_key(self, network: Network, key_path: KeyPath) -> bytes:
        """Get the compressed public key at a path."""
        if network is None:
            raise ValueError("network is required")
        key_path = KeyPath.parse(key_path)
        xpub = await self.get_ext_pub_key(network, key_path, include_parent_fingerprint=False)
        return AccountKey.from_extended_key(xpub, network).public_key

    async def sign_transaction(
        self,
        psbt: PSBT,
        root_fingerprint: Optional[bytes],
        account_key: AccountKey,
        change_hint: Optional[Union[Script, bytes]] = None,
    ) -> PSBT:
        """Sign the PSBT inputs that belong to account_key.

        Raises:
            SigningRefusedError: If the device returns no signatures
            ConnectivityError: If the channel closes during signing
        """
        known = known_fingerprints(account_key, root_fingerprint)
        unsigned_tx = psbt.tx

        change_path = self._find_change_path(psbt, known, account_key, change_hint)

        requests: list[SignatureRequest] = []
        for index, inp in enumerate(psbt.inputs):
            hd_key = resolve_hd_key(known, account_key, inp)
            if hd_key is None:
                logger.debug(f"Input {index} does not belong to the account, skipping")
                continue
            requests.append(
                SignatureRequest(
                    input_coin=self._signable_coin(inp),
                    input_transaction=inp.non_witness_utxo,
                    key_path=hd_key.key_path,
                    public_key=hd_key.public_key,
                )
            )

        logger.info(
            f"Requesting {len(requests)} signature(s) for {len(psbt.inputs)} input(s)"
            f", change path {change_path if change_path is not None else 'none'}"
        )

        signatures = await self._client.sign_transaction(requests, unsigned_tx, change_path)
        if signatures is None:
            raise SigningRefusedError("The ledger failed to sign the transaction")
        if len(signatures) != len(requests):
            raise HardwareWalletError(
                f"The ledger returned {len(signatures)} signature(s) for {len(requests)} request(s)"
            )
        for request, signature in zip(requests, signatures):
            request.signature = signature

        signed = copy.deepcopy(psbt)
        merged = 0
        for request in requests:
            if request.signature is None:
                continue
            inp = self._find_input(signed, request.input_coin)
            if inp is None:
                continue
            inp.partial_sigs[request.public_key] = request.signature
            merged += 1

        logger.info(f"Merged {merged} of {len(requests)} requested signature(s)")
        return signed

    @staticmethod
    def _find_change_path(
        psbt: PSBT,
        known: frozenset[bytes],
        account_key: AccountKey,
        change_hint: Optional[Union[Script, bytes]],
    ) -> Optional[KeyPath]:
        """Path of the first output matching the hint that belongs to the account."""
        hint = None
        if change_hint is not None:
            hint = change_hint.data if isinstance(change_hint, Script) else bytes(change_hint)

        for out in psbt.outputs:
            if hint is not None and out.script_pubkey.data != hint:
                continue
            hd_key = resolve_hd_key(known, account_key, out)
            if hd_key is not None:
                return hd_key.key_path
        return None

    @staticmethod
    def _signable_coin(inp: InputScope) -> SignableCoin:
        utxo = inp.witness_utxo
        if utxo is None and inp.non_witness_utxo is not None:
            prev_outputs = inp.non_witness_utxo.vout
            if inp.vout < len(prev_outputs):
                utxo = prev_outputs[inp.vout]
            else:
                logger.warning(
                    f"Previous transaction of {inp.txid.hex()}:{inp.vout} "
                    f"has only {len(prev_outputs)} output(s)"
                )
        return SignableCoin(txid=inp.txid, vout=inp.vout, utxo=utxo)

    @staticmethod
    def _find_input(psbt: PSBT, coin: SignableCoin) -> Optional[InputScope]:
        for inp in psbt.inputs:
            if (inp.txid, inp.vout) == coin.outpoint:
                return inp
        return None

    async def close(self) -> None:
        await self._client.transport.close()
