"""
Bitcoin transaction skeleton carried by every YUV transaction.

Segwit-aware serialization, parsing, txid and virtual size, plus the
structural mapping to the node's ``bitcoin_tx`` DTO.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field
from typing import Any

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_RETURN = 0x6A

DEFAULT_SEQUENCE = 0xFFFFFFFF


class TransactionParseError(Exception):
    pass


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def encode_varint(value: int) -> bytes:
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    first = data[offset]
    offset += 1

    if first < 0xFD:
        return first, offset
    if first == 0xFD:
        value = int.from_bytes(data[offset : offset + 2], "little")
        return value, offset + 2
    if first == 0xFE:
        value = int.from_bytes(data[offset : offset + 4], "little")
        return value, offset + 4
    value = int.from_bytes(data[offset : offset + 8], "little")
    return value, offset + 8


def push_data(data: bytes) -> bytes:
    """Minimal script push of ``data``."""
    length = len(data)
    if length <= 75:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + struct.pack("<H", length) + data
    raise ValueError(f"Push data too large: {length} bytes")


def p2wpkh_script(pubkey: bytes) -> bytes:
    """P2WPKH scriptPubKey (OP_0 <20-byte-hash>)"""
    return bytes([OP_0, 0x14]) + hash160(pubkey)


def op_return_script(*chunks: bytes) -> bytes:
    """OP_RETURN followed by one push per data chunk."""
    return bytes([OP_RETURN]) + b"".join(push_data(chunk) for chunk in chunks)


@dataclass
class TxIn:
    txid: str
    vout: int
    script_sig: bytes = b""
    sequence: int = DEFAULT_SEQUENCE
    witness: list[bytes] = field(default_factory=list)

    def serialize_outpoint(self) -> bytes:
        # txid is in RPC format (big-endian), reversed for the raw tx
        return bytes.fromhex(self.txid)[::-1] + struct.pack("<I", self.vout)


@dataclass
class TxOut:
    value: int
    script_pubkey: bytes

    def serialize(self) -> bytes:
        return struct.pack("<Q", self.value) + encode_varint(len(self.script_pubkey)) + (
            self.script_pubkey
        )


@dataclass
class BitcoinTransaction:
    version: int = 2
    inputs: list[TxIn] = field(default_factory=list)
    outputs: list[TxOut] = field(default_factory=list)
    locktime: int = 0

    @property
    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        with_witness = include_witness and self.has_witness

        result = struct.pack("<I", self.version)
        if with_witness:
            result += bytes([0x00, 0x01])

        result += encode_varint(len(self.inputs))
        for inp in self.inputs:
            result += inp.serialize_outpoint()
            result += encode_varint(len(inp.script_sig)) + inp.script_sig
            result += struct.pack("<I", inp.sequence)

        result += encode_varint(len(self.outputs))
        for out in self.outputs:
            result += out.serialize()

        if with_witness:
            for inp in self.inputs:
                result += encode_varint(len(inp.witness))
                for item in inp.witness:
                    result += encode_varint(len(item)) + item

        result += struct.pack("<I", self.locktime)
        return result

    def to_hex(self) -> str:
        return self.serialize().hex()

    @property
    def txid(self) -> str:
        """Double SHA256 of the non-witness serialization, byte-reversed."""
        return hash256(self.serialize(include_witness=False))[::-1].hex()

    @property
    def weight(self) -> int:
        base_size = len(self.serialize(include_witness=False))
        total_size = len(self.serialize(include_witness=True))
        return base_size * 3 + total_size

    @property
    def vsize(self) -> int:
        return (self.weight + 3) // 4

    @classmethod
    def from_hex(cls, tx_hex: str) -> BitcoinTransaction:
        return cls.from_bytes(bytes.fromhex(tx_hex))

    @classmethod
    def from_bytes(cls, tx_bytes: bytes) -> BitcoinTransaction:
        try:
            offset = 0
            version = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            offset += 4

            has_witness = False
            if tx_bytes[offset] == 0x00 and tx_bytes[offset + 1] == 0x01:
                has_witness = True
                offset += 2

            input_count, offset = read_varint(tx_bytes, offset)
            inputs: list[TxIn] = []
            for _ in range(input_count):
                txid = tx_bytes[offset : offset + 32][::-1].hex()
                offset += 32
                vout = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
                offset += 4
                script_len, offset = read_varint(tx_bytes, offset)
                script_sig = tx_bytes[offset : offset + script_len]
                offset += script_len
                sequence = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
                offset += 4
                inputs.append(TxIn(txid, vout, script_sig, sequence))

            output_count, offset = read_varint(tx_bytes, offset)
            outputs: list[TxOut] = []
            for _ in range(output_count):
                value = struct.unpack("<Q", tx_bytes[offset : offset + 8])[0]
                offset += 8
                script_len, offset = read_varint(tx_bytes, offset)
                outputs.append(TxOut(value, tx_bytes[offset : offset + script_len]))
                offset += script_len

            if has_witness:
                for inp in inputs:
                    item_count, offset = read_varint(tx_bytes, offset)
                    for _ in range(item_count):
                        item_len, offset = read_varint(tx_bytes, offset)
                        inp.witness.append(tx_bytes[offset : offset + item_len])
                        offset += item_len

            locktime = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            offset += 4
        except (IndexError, struct.error) as e:
            raise TransactionParseError(f"Failed to parse transaction: {e}") from e

        if offset != len(tx_bytes):
            raise TransactionParseError(f"{len(tx_bytes) - offset} trailing bytes after locktime")

        return cls(version, inputs, outputs, locktime)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "lock_time": self.locktime,
            "input": [
                {
                    "previous_output": f"{inp.txid}:{inp.vout}",
                    "script_sig": inp.script_sig.hex(),
                    "sequence": inp.sequence,
                    "witness": [item.hex() for item in inp.witness],
                }
                for inp in self.inputs
            ],
            "output": [
                {"value": out.value, "script_pubkey": out.script_pubkey.hex()}
                for out in self.outputs
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BitcoinTransaction:
        inputs = []
        for inp in data.get("input", []):
            txid, vout = inp["previous_output"].split(":")
            inputs.append(
                TxIn(
                    txid=txid,
                    vout=int(vout),
                    script_sig=bytes.fromhex(inp.get("script_sig", "")),
                    sequence=int(inp.get("sequence", DEFAULT_SEQUENCE)),
                    witness=[bytes.fromhex(item) for item in inp.get("witness", [])],
                )
            )
        outputs = [
            TxOut(int(out["value"]), bytes.fromhex(out["script_pubkey"]))
            for out in data.get("output", [])
        ]
        return cls(
            version=int(data["version"]),
            inputs=inputs,
            outputs=outputs,
            locktime=int(data.get("lock_time", 0)),
        )
