"""Runestone scripts carrying protocol messages for DIESEL minting."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from deezel.primitives import Instruction, Transaction, iter_instructions

MAX_SCRIPT_ELEMENT_SIZE = 520
PROTOCOL_TAG = 0x0D
OP_RETURN = 0x6A
OP_PUSHNUM_13 = 0x5D
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
MAGIC_NUMBER = OP_PUSHNUM_13

DIESEL_PROTOCOL_TAG = 1
DIESEL_MESSAGE = bytes([2, 0, 77])

_U128_MAX = (1 << 128) - 1


def encode_varint(value: int) -> bytes:
    """LEB128-encode an unsigned 128-bit integer."""
    if not 0 <= value <= _U128_MAX:
        raise ValueError(f"value out of range for u128: {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            byte |= 0x80
        out.append(byte)
        if not value:
            return bytes(out)


def decode_varint(data: bytes) -> tuple[int, int]:
    """Decode one varint from ``data``; return ``(value, bytes_consumed)``."""
    result = 0
    shift = 0
    for consumed, byte in enumerate(data, start=1):
        result = (result | ((byte & 0x7F) << shift)) & _U128_MAX
        if not byte & 0x80:
            return result, consumed
        shift += 7
        if shift > 127:
            raise ValueError("Varint too large")
    raise ValueError("Truncated varint")


def decode_all(payload: bytes) -> list[int]:
    """Decode every varint in ``payload``."""
    payload = bytes(payload)
    integers = []
    pos = 0
    while pos < len(payload):
        value, length = decode_varint(payload[pos:])
        integers.append(value)
        pos += length
    return integers


def _push(chunk: bytes) -> bytes:
    size = len(chunk)
    if size <= 75:
        return bytes([size]) + chunk
    if size <= 255:
        return bytes([OP_PUSHDATA1, size]) + chunk
    return bytes([OP_PUSHDATA2]) + size.to_bytes(2, "little") + chunk


def _protocol_values(integers: list[int]) -> list[int]:
    values = []
    pairs = iter(integers)
    for tag in pairs:
        value = next(pairs, None)
        if tag == PROTOCOL_TAG and value is not None:
            values.append(value)
    return values


@dataclass
class Runestone:
    """A runestone whose protocol field holds a tag followed by a message."""

    protocol: list[int] | None = None

    @classmethod
    def new(cls, protocol_tag: int, message: Iterable[int]) -> Runestone:
        return cls([protocol_tag, *message])

    @classmethod
    def new_diesel(cls) -> Runestone:
        return cls.new(DIESEL_PROTOCOL_TAG, DIESEL_MESSAGE)

    def encipher(self) -> bytes:
        """Return the OP_RETURN script carrying this runestone."""
        payload = b"".join(
            encode_varint(PROTOCOL_TAG) + encode_varint(value)
            for value in self.protocol or []
        )
        chunks = (
            payload[start:start + MAX_SCRIPT_ELEMENT_SIZE]
            for start in range(0, len(payload), MAX_SCRIPT_ELEMENT_SIZE)
        )
        return bytes([OP_RETURN, MAGIC_NUMBER]) + b"".join(_push(c) for c in chunks)

    @classmethod
    def extract(cls, transaction: Transaction) -> Runestone | None:
        """Find the first runestone with protocol data in ``transaction``.

        A malformed runestone payload makes the whole search return None.
        """
        for output in transaction.outputs:
            instructions = iter_instructions(output.script_pubkey)
            try:
                if next(instructions, None) != Instruction(OP_RETURN):
                    continue
                if next(instructions, None) != Instruction(MAGIC_NUMBER):
                    continue
            except ValueError:
                continue
            payload = bytearray()
            try:
                for instruction in instructions:
                    if instruction.data is None:
                        return None
                    payload += instruction.data
                integers = decode_all(payload)
            except ValueError:
                return None
            protocol = _protocol_values(integers)
            if protocol:
                return cls(protocol)
        return None

    def protocol_tag(self) -> int | None:
        return self.protocol[0] if self.protocol else None

    def message_bytes(self) -> bytes | None:
        """Protocol values after the tag, each truncated to a byte."""
        if self.protocol is None:
            return None
        return bytes(value & 0xFF for value in self.protocol[1:])

    def is_diesel(self) -> bool:
        return (
            self.protocol_tag() == DIESEL_PROTOCOL_TAG
            and self.message_bytes() == DIESEL_MESSAGE
        )