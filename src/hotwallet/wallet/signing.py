"""
Signature digests and input signers for the three address families.

- Legacy P2PKH: original sighash algorithm, signature in scriptSig
- SegWit v0 P2WPKH: BIP-143 digest, witness [signature, pubkey]
- Taproot P2TR key path: BIP-341 digest with SIGHASH_DEFAULT, witness [signature]
"""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod

from loguru import logger

from hotwallet.constants import LEGACY_TX_VERSION, SEGWIT_TX_VERSION, SIGHASH_ALL, SIGHASH_DEFAULT
from hotwallet.crypto import hash256, sha256, tagged_hash
from hotwallet.errors import SigningError, TransactionFailedError
from hotwallet.models import AddressType
from hotwallet.wallet.address import p2pkh_script, taproot_tweak
from hotwallet.wallet.keys import Keypair
from hotwallet.wallet.transaction import (
    Transaction,
    TxInput,
    TxOutput,
    serialize_outpoint,
    serialize_output,
    varint,
)


def is_p2pkh_script(script: bytes) -> bool:
    return (
        len(script) == 25
        and script[:3] == bytes([0x76, 0xA9, 0x14])
        and script[23:] == bytes([0x88, 0xAC])
    )


def is_p2wpkh_script(script: bytes) -> bool:
    return len(script) == 22 and script[:2] == bytes([0x00, 0x14])


def is_p2tr_script(script: bytes) -> bool:
    return len(script) == 34 and script[:2] == bytes([0x51, 0x20])


def push_data(data: bytes) -> bytes:
    """Minimal push for data up to 75 bytes (signatures and public keys)."""
    if len(data) > 75:
        raise SigningError(f"Push of {len(data)} bytes not supported")
    return bytes([len(data)]) + data


def legacy_sighash(
    tx: Transaction, input_index: int, script_code: bytes, sighash_type: int = SIGHASH_ALL
) -> bytes:
    """
    Original (pre-segwit) signature digest.

    Every scriptSig is blanked except the one being signed, which is replaced
    with the previous output's locking script. The non-witness serialization
    plus the 4-byte sighash type is double-SHA256'd.
    """
    if not 0 <= input_index < len(tx.inputs):
        raise SigningError("Input index out of range")

    inputs = [
        TxInput(
            txid=inp.txid,
            vout=inp.vout,
            script_sig=script_code if i == input_index else b"",
            sequence=inp.sequence,
        )
        for i, inp in enumerate(tx.inputs)
    ]
    stripped = Transaction(
        version=tx.version, inputs=inputs, outputs=tx.outputs, locktime=tx.locktime
    )
    preimage = stripped.serialize(include_witness=False) + struct.pack("<I", sighash_type)
    return hash256(preimage)


def segwit_v0_sighash(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    amount: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """
    BIP-143 signature digest (SIGHASH_ALL).

    Args:
        tx: Transaction being signed
        input_index: Index of the input to sign
        script_code: The scriptCode (P2PKH script for P2WPKH)
        amount: Value of the output being spent, in satoshis
        sighash_type: Sighash type
    """
    if not 0 <= input_index < len(tx.inputs):
        raise SigningError("Input index out of range")

    hash_prevouts = hash256(b"".join(serialize_outpoint(i.txid, i.vout) for i in tx.inputs))
    hash_sequence = hash256(b"".join(struct.pack("<I", i.sequence) for i in tx.inputs))
    hash_outputs = hash256(b"".join(serialize_output(o) for o in tx.outputs))

    target = tx.inputs[input_index]
    preimage = (
        struct.pack("<I", tx.version)
        + hash_prevouts
        + hash_sequence
        + serialize_outpoint(target.txid, target.vout)
        + varint(len(script_code))
        + script_code
        + struct.pack("<Q", amount)
        + struct.pack("<I", target.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + struct.pack("<I", sighash_type)
    )
    return hash256(preimage)


def taproot_key_path_sighash(
    tx: Transaction,
    input_index: int,
    prevouts: list[TxOutput],
    sighash_type: int = SIGHASH_DEFAULT,
) -> bytes:
    """
    BIP-341 signature digest for a key path spend without annex.

    Only SIGHASH_DEFAULT and SIGHASH_ALL are supported; both commit to every
    input amount and scriptPubKey.

    Args:
        tx: Transaction being signed
        input_index: Index of the input to sign
        prevouts: The outputs spent by every input, in input order
        sighash_type: SIGHASH_DEFAULT (0x00) or SIGHASH_ALL (0x01)
    """
    if sighash_type not in (SIGHASH_DEFAULT, SIGHASH_ALL):
        raise SigningError(f"Unsupported taproot sighash type {sighash_type:#04x}")
    if not 0 <= input_index < len(tx.inputs):
        raise SigningError("Input index out of range")
    if len(prevouts) != len(tx.inputs):
        raise SigningError("Taproot signing needs the spent output of every input")

    sha_prevouts = sha256(b"".join(serialize_outpoint(i.txid, i.vout) for i in tx.inputs))
    sha_amounts = sha256(b"".join(struct.pack("<Q", p.value) for p in prevouts))
    sha_scriptpubkeys = sha256(
        b"".join(varint(len(p.script_pubkey)) + p.script_pubkey for p in prevouts)
    )
    sha_sequences = sha256(b"".join(struct.pack("<I", i.sequence) for i in tx.inputs))
    sha_outputs = sha256(b"".join(serialize_output(o) for o in tx.outputs))

    message = (
        b"\x00"  # epoch
        + bytes([sighash_type])
        + struct.pack("<I", tx.version)
        + struct.pack("<I", tx.locktime)
        + sha_prevouts
        + sha_amounts
        + sha_scriptpubkeys
        + sha_sequences
        + sha_outputs
        + b"\x00"  # spend_type: key path, no annex
        + struct.pack("<I", input_index)
    )
    return tagged_hash("TapSighash", message)


class InputSigner(ABC):
    """Signs every input of a transaction spending one address family."""

    address_type: AddressType
    tx_version: int

    def __init__(self, keypair: Keypair):
        self.keypair = keypair

    @staticmethod
    @abstractmethod
    def matches_template(script: bytes) -> bool: ...

    def check_prevouts(self, prevouts: list[TxOutput]) -> None:
        """
        Ensure each spent output has this family's locking script shape.

        Raises:
            TransactionFailedError: On the first mismatching script
        """
        for index, prevout in enumerate(prevouts):
            if not self.matches_template(prevout.script_pubkey):
                raise TransactionFailedError(
                    f"Input {index} script {prevout.script_pubkey.hex() or '<empty>'} "
                    f"is not a {self.address_type.value} output"
                )

    def sign(self, tx: Transaction, prevouts: list[TxOutput]) -> None:
        """Fill in scriptSig or witness of every input of tx, in place."""
        if len(prevouts) != len(tx.inputs):
            raise SigningError("Number of spent outputs does not match inputs")
        self.check_prevouts(prevouts)
        self._sign_inputs(tx, prevouts)
        logger.debug(f"Signed {len(tx.inputs)} {self.address_type.value} inputs")

    @abstractmethod
    def _sign_inputs(self, tx: Transaction, prevouts: list[TxOutput]) -> None: ...


class LegacySigner(InputSigner):
    address_type = AddressType.LEGACY
    tx_version = LEGACY_TX_VERSION

    matches_template = staticmethod(is_p2pkh_script)

    def _sign_inputs(self, tx: Transaction, prevouts: list[TxOutput]) -> None:
        pubkey = self.keypair.public_key_bytes()
        for index, prevout in enumerate(prevouts):
            digest = legacy_sighash(tx, index, prevout.script_pubkey)
            signature = self.keypair.sign_ecdsa(digest) + bytes([SIGHASH_ALL])
            tx.inputs[index].script_sig = push_data(signature) + push_data(pubkey)


class SegwitSigner(InputSigner):
    address_type = AddressType.SEGWIT
    tx_version = SEGWIT_TX_VERSION

    matches_template = staticmethod(is_p2wpkh_script)

    def _sign_inputs(self, tx: Transaction, prevouts: list[TxOutput]) -> None:
        pubkey = self.keypair.public_key_bytes()
        for index, prevout in enumerate(prevouts):
            # BIP-143 scriptCode for P2WPKH is the P2PKH script of the program
            script_code = p2pkh_script(prevout.script_pubkey[2:])
            digest = segwit_v0_sighash(tx, index, script_code, prevout.value)
            signature = self.keypair.sign_ecdsa(digest) + bytes([SIGHASH_ALL])
            tx.inputs[index].witness = [signature, pubkey]


class TaprootSigner(InputSigner):
    address_type = AddressType.TAPROOT
    tx_version = SEGWIT_TX_VERSION

    matches_template = staticmethod(is_p2tr_script)

    def _sign_inputs(self, tx: Transaction, prevouts: list[TxOutput]) -> None:
        tweak = taproot_tweak(self.keypair.public_key)
        with self.keypair.taproot_tweaked(tweak) as tweaked:
            for index in range(len(tx.inputs)):
                digest = taproot_key_path_sighash(tx, index, prevouts)
                # SIGHASH_DEFAULT signatures carry no trailing sighash byte
                tx.inputs[index].witness = [tweaked.sign_schnorr(digest)]


SIGNERS: dict[AddressType, type[InputSigner]] = {
    AddressType.LEGACY: LegacySigner,
    AddressType.SEGWIT: SegwitSigner,
    AddressType.TAPROOT: TaprootSigner,
}


def signer_for(address_type: AddressType | str, keypair: Keypair) -> InputSigner:
    return SIGNERS[AddressType(address_type)](keypair)
