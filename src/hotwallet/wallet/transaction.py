"""
Bitcoin transaction data types and binary serialization (BIP-144 aware).
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from hotwallet.constants import LOCKTIME_NONE, SEQUENCE_FINAL
from hotwallet.crypto import hash256
from hotwallet.errors import TransactionError


@dataclass
class TxInput:
    """Transaction input. txid is the usual display (big-endian) hex."""

    txid: str
    vout: int
    script_sig: bytes = b""
    sequence: int = SEQUENCE_FINAL
    witness: list[bytes] = field(default_factory=list)


@dataclass
class TxOutput:
    value: int
    script_pubkey: bytes


@dataclass
class Transaction:
    version: int
    inputs: list[TxInput]
    outputs: list[TxOutput]
    locktime: int = LOCKTIME_NONE

    @property
    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        """
        Serialize the transaction.

        The marker/flag and witness section are written only when
        include_witness is set and at least one input carries a witness.
        """
        with_witness = include_witness and self.has_witness

        result = struct.pack("<I", self.version)
        if with_witness:
            result += b"\x00\x01"

        result += varint(len(self.inputs))
        for inp in self.inputs:
            result += serialize_input(inp)

        result += varint(len(self.outputs))
        for out in self.outputs:
            result += serialize_output(out)

        if with_witness:
            for inp in self.inputs:
                result += serialize_witness(inp.witness)

        result += struct.pack("<I", self.locktime)
        return result

    @property
    def txid(self) -> str:
        """Double-SHA256 of the non-witness serialization, reversed for display."""
        return hash256(self.serialize(include_witness=False))[::-1].hex()

    @property
    def wtxid(self) -> str:
        return hash256(self.serialize())[::-1].hex()

    @property
    def weight(self) -> int:
        base_size = len(self.serialize(include_witness=False))
        total_size = len(self.serialize())
        return base_size * 3 + total_size

    @property
    def vsize(self) -> int:
        return (self.weight + 3) // 4


def varint(n: int) -> bytes:
    """Encode integer as Bitcoin varint."""
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return bytes([0xFD]) + struct.pack("<H", n)
    elif n <= 0xFFFFFFFF:
        return bytes([0xFE]) + struct.pack("<I", n)
    else:
        return bytes([0xFF]) + struct.pack("<Q", n)


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read varint at offset, return (value, new_offset)."""
    first = _take(data, offset, 1)[0]
    offset += 1

    if first < 0xFD:
        return first, offset
    if first == 0xFD:
        return int.from_bytes(_take(data, offset, 2), "little"), offset + 2
    if first == 0xFE:
        return int.from_bytes(_take(data, offset, 4), "little"), offset + 4
    return int.from_bytes(_take(data, offset, 8), "little"), offset + 8


def serialize_outpoint(txid: str, vout: int) -> bytes:
    """Serialize outpoint (txid:vout). txid is reversed to internal byte order."""
    txid_bytes = bytes.fromhex(txid)[::-1]
    return txid_bytes + struct.pack("<I", vout)


def serialize_input(inp: TxInput) -> bytes:
    result = serialize_outpoint(inp.txid, inp.vout)
    result += varint(len(inp.script_sig))
    result += inp.script_sig
    result += struct.pack("<I", inp.sequence)
    return result


def serialize_output(out: TxOutput) -> bytes:
    result = struct.pack("<Q", out.value)
    result += varint(len(out.script_pubkey))
    result += out.script_pubkey
    return result


def serialize_witness(stack: list[bytes]) -> bytes:
    result = varint(len(stack))
    for item in stack:
        result += varint(len(item)) + item
    return result


def _take(data: bytes, offset: int, length: int) -> bytes:
    if offset + length > len(data):
        raise TransactionError(f"Unexpected end of data at offset {offset}")
    return data[offset : offset + length]


def parse_transaction(raw: bytes) -> Transaction:
    """
    Parse a serialized transaction, with or without witness data.

    Raises:
        TransactionError: If the bytes are truncated or have trailing data
    """
    offset = 0
    version = struct.unpack("<I", _take(raw, offset, 4))[0]
    offset += 4

    has_witness = False
    if _take(raw, offset, 1) == b"\x00":
        if _take(raw, offset + 1, 1) != b"\x01":
            raise TransactionError("Invalid witness flag")
        has_witness = True
        offset += 2

    input_count, offset = read_varint(raw, offset)
    inputs: list[TxInput] = []
    for _ in range(input_count):
        txid = _take(raw, offset, 32)[::-1].hex()
        offset += 32
        vout = struct.unpack("<I", _take(raw, offset, 4))[0]
        offset += 4
        script_len, offset = read_varint(raw, offset)
        script_sig = _take(raw, offset, script_len)
        offset += script_len
        sequence = struct.unpack("<I", _take(raw, offset, 4))[0]
        offset += 4
        inputs.append(TxInput(txid=txid, vout=vout, script_sig=script_sig, sequence=sequence))

    output_count, offset = read_varint(raw, offset)
    outputs: list[TxOutput] = []
    for _ in range(output_count):
        value = struct.unpack("<Q", _take(raw, offset, 8))[0]
        offset += 8
        script_len, offset = read_varint(raw, offset)
        script_pubkey = _take(raw, offset, script_len)
        offset += script_len
        outputs.append(TxOutput(value=value, script_pubkey=script_pubkey))

    if has_witness:
        for inp in inputs:
            stack_count, offset = read_varint(raw, offset)
            for _ in range(stack_count):
                item_len, offset = read_varint(raw, offset)
                inp.witness.append(_take(raw, offset, item_len))
                offset += item_len

    locktime = struct.unpack("<I", _take(raw, offset, 4))[0]
    offset += 4

    if offset != len(raw):
        raise TransactionError(f"{len(raw) - offset} trailing bytes after transaction")

    return Transaction(version=version, inputs=inputs, outputs=outputs, locktime=locktime)
