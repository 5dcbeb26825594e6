"""Bitcoin scripts, transactions and address encodings."""

from __future__ import annotations

import hashlib
from collections.abc import Iterator
from dataclasses import dataclass, field

OP_0 = 0x00
OP_PUSHBYTES_75 = 0x4B
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_DUP = 0x76
OP_HASH160 = 0xA9
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_CHECKSIG = 0xAC

_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_CONST = 1
_BECH32M_CONST = 0x2BC830A3
_BECH32_GENERATORS = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_SEGWIT_HRPS = ("bc1", "tb1", "bcrt1")
_P2PKH_VERSIONS = (0x00, 0x6F)
_P2SH_VERSIONS = (0x05, 0xC4)


class ScriptError(ValueError):
    """Raised when a script cannot be split into instructions."""


@dataclass(frozen=True)
class Instruction:
    """One script instruction: an opcode, with data when it is a push."""

    opcode: int
    data: bytes | None = None

    @property
    def is_push(self) -> bool:
        return self.data is not None


def iter_instructions(script: bytes) -> Iterator[Instruction]:
    """Yield the instructions of ``script``; raise ScriptError on a bad push."""
    data = bytes(script)
    pos = 0
    while pos < len(data):
        opcode = data[pos]
        pos += 1
        if opcode <= OP_PUSHBYTES_75:
            size = opcode
        elif opcode in (OP_PUSHDATA1, OP_PUSHDATA2, OP_PUSHDATA4):
            width = {OP_PUSHDATA1: 1, OP_PUSHDATA2: 2, OP_PUSHDATA4: 4}[opcode]
            if pos + width > len(data):
                raise ScriptError("early end of script")
            size = int.from_bytes(data[pos:pos + width], "little")
            pos += width
        else:
            yield Instruction(opcode)
            continue
        if pos + size > len(data):
            raise ScriptError("early end of script")
        yield Instruction(opcode, data[pos:pos + size])
        pos += size


def _sha256d(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def _compact_size(n: int) -> bytes:
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + n.to_bytes(2, "little")
    if n <= 0xFFFFFFFF:
        return b"\xfe" + n.to_bytes(4, "little")
    return b"\xff" + n.to_bytes(8, "little")


def _var_bytes(data: bytes) -> bytes:
    return _compact_size(len(data)) + data


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def read(self, n: int) -> bytes:
        if n > self.remaining:
            raise ValueError("unexpected end of transaction data")
        chunk = self._data[self._pos:self._pos + n]
        self._pos += n
        return chunk

    def uint(self, width: int) -> int:
        return int.from_bytes(self.read(width), "little")

    def compact_size(self) -> int:
        first = self.uint(1)
        if first < 0xFD:
            return first
        width, minimum = {0xFD: (2, 0xFD), 0xFE: (4, 0x10000), 0xFF: (8, 0x100000000)}[first]
        value = self.uint(width)
        if value < minimum:
            raise ValueError("non-minimal compact size")
        return value

    def var_bytes(self) -> bytes:
        return self.read(self.compact_size())


@dataclass
class TxIn:
    """A transaction input spending ``txid:vout`` (txid in display order)."""

    txid: str = "00" * 32
    vout: int = 0
    script_sig: bytes = b""
    sequence: int = 0xFFFFFFFF
    witness: list[bytes] = field(default_factory=list)

    def _serialize(self) -> bytes:
        txid = bytes.fromhex(self.txid)
        if len(txid) != 32:
            raise ValueError(f"txid must be 32 bytes, got {len(txid)}")
        return (
            txid[::-1]
            + self.vout.to_bytes(4, "little")
            + _var_bytes(self.script_sig)
            + self.sequence.to_bytes(4, "little")
        )

    @classmethod
    def _read(cls, reader: _Reader) -> TxIn:
        txid = reader.read(32)[::-1].hex()
        vout = reader.uint(4)
        script_sig = reader.var_bytes()
        sequence = reader.uint(4)
        return cls(txid, vout, script_sig, sequence)


@dataclass
class TxOut:
    """A transaction output of ``value`` satoshis."""

    value: int
    script_pubkey: bytes

    def _serialize(self) -> bytes:
        return self.value.to_bytes(8, "little") + _var_bytes(self.script_pubkey)

    @classmethod
    def _read(cls, reader: _Reader) -> TxOut:
        value = reader.uint(8)
        return cls(value, reader.var_bytes())


@dataclass
class Transaction:
    """A Bitcoin transaction."""

    version: int = 2
    lock_time: int = 0
    inputs: list[TxIn] = field(default_factory=list)
    outputs: list[TxOut] = field(default_factory=list)

    def _legacy_body(self) -> tuple[bytes, bytes]:
        ins = _compact_size(len(self.inputs)) + b"".join(i._serialize() for i in self.inputs)
        outs = _compact_size(len(self.outputs)) + b"".join(o._serialize() for o in self.outputs)
        return ins, outs

    def serialize(self) -> bytes:
        """Consensus encoding, with witness data when any is present."""
        version = self.version.to_bytes(4, "little", signed=True)
        lock_time = self.lock_time.to_bytes(4, "little")
        ins, outs = self._legacy_body()
        has_witness = not self.inputs or any(i.witness for i in self.inputs)
        if not has_witness:
            return version + ins + outs + lock_time
        witnesses = b"".join(
            _compact_size(len(i.witness)) + b"".join(_var_bytes(item) for item in i.witness)
            for i in self.inputs
        )
        return version + b"\x00\x01" + ins + outs + witnesses + lock_time

    def txid(self) -> str:
        """The transaction id in display (byte-reversed) hex."""
        version = self.version.to_bytes(4, "little", signed=True)
        lock_time = self.lock_time.to_bytes(4, "little")
        ins, outs = self._legacy_body()
        return _sha256d(version + ins + outs + lock_time)[::-1].hex()

    @classmethod
    def from_bytes(cls, data: bytes) -> Transaction:
        """Decode a consensus-encoded transaction; raise ValueError if invalid."""
        reader = _Reader(data)
        version = int.from_bytes(reader.read(4), "little", signed=True)
        count = reader.compact_size()
        if count == 0:
            flag = reader.uint(1)
            if flag != 1:
                raise ValueError(f"unsupported segwit flag {flag}")
            inputs = [TxIn._read(reader) for _ in range(reader.compact_size())]
            outputs = [TxOut._read(reader) for _ in range(reader.compact_size())]
            for txin in inputs:
                txin.witness = [reader.var_bytes() for _ in range(reader.compact_size())]
            if inputs and all(not txin.witness for txin in inputs):
                raise ValueError("witness flag set but no witnesses present")
        else:
            inputs = [TxIn._read(reader) for _ in range(count)]
            outputs = [TxOut._read(reader) for _ in range(reader.compact_size())]
        lock_time = reader.uint(4)
        if reader.remaining:
            raise ValueError("data not consumed entirely when decoding transaction")
        return cls(version, lock_time, inputs, outputs)


def _bech32_polymod(values: list[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ value
        for i, generator in enumerate(_BECH32_GENERATORS):
            if (top >> i) & 1:
                chk ^= generator
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _convert_bits(data: bytes | list[int], from_bits: int, to_bits: int, pad: bool) -> list[int]:
    acc = 0
    bits = 0
    result = []
    max_value = (1 << to_bits) - 1
    max_acc = (1 << (from_bits + to_bits - 1)) - 1
    for value in data:
        if value < 0 or value >> from_bits:
            raise ValueError("invalid data for bit conversion")
        acc = ((acc << from_bits) | value) & max_acc
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            result.append((acc >> bits) & max_value)
    if pad:
        if bits:
            result.append((acc << (to_bits - bits)) & max_value)
    elif bits >= from_bits or ((acc << (to_bits - bits)) & max_value):
        raise ValueError("invalid padding in bech32 data")
    return result


def _check_program(version: int, program: bytes) -> None:
    if not 0 <= version <= 16:
        raise ValueError(f"invalid witness version {version}")
    if not 2 <= len(program) <= 40:
        raise ValueError(f"invalid witness program length {len(program)}")
    if version == 0 and len(program) not in (20, 32):
        raise ValueError(f"invalid v0 witness program length {len(program)}")


def encode_segwit_address(hrp: str, version: int, program: bytes) -> str:
    """Encode a witness program as a bech32 (v0) or bech32m (v1+) address."""
    program = bytes(program)
    _check_program(version, program)
    hrp = hrp.lower()
    const = _BECH32_CONST if version == 0 else _BECH32M_CONST
    data = [version] + _convert_bits(program, 8, 5, True)
    polymod = _bech32_polymod(_hrp_expand(hrp) + data + [0] * 6) ^ const
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(_BECH32_CHARSET[d] for d in data + checksum)


def decode_segwit_address(address: str) -> tuple[str, int, bytes]:
    """Decode a segwit address into ``(hrp, version, program)``."""
    if any(not 33 <= ord(c) <= 126 for c in address):
        raise ValueError("invalid character in address")
    if address.lower() != address and address.upper() != address:
        raise ValueError("mixed case address")
    address = address.lower()
    pos = address.rfind("1")
    if pos < 1 or pos + 7 > len(address) or len(address) > 90:
        raise ValueError("invalid bech32 separator position or length")
    hrp, encoded = address[:pos], address[pos + 1:]
    if any(c not in _BECH32_CHARSET for c in encoded):
        raise ValueError("invalid bech32 character")
    data = [_BECH32_CHARSET.index(c) for c in encoded]
    const = _bech32_polymod(_hrp_expand(hrp) + data)
    if const not in (_BECH32_CONST, _BECH32M_CONST):
        raise ValueError("invalid bech32 checksum")
    data = data[:-6]
    if not data:
        raise ValueError("empty witness data")
    version = data[0]
    program = bytes(_convert_bits(data[1:], 5, 8, False))
    _check_program(version, program)
    expected = _BECH32_CONST if version == 0 else _BECH32M_CONST
    if const != expected:
        raise ValueError("wrong checksum variant for witness version")
    return hrp, version, program


def _base58_decode_check(text: str) -> bytes:
    number = 0
    for char in text:
        digit = _BASE58_ALPHABET.find(char)
        if digit < 0:
            raise ValueError(f"invalid base58 character {char!r}")
        number = number * 58 + digit
    leading = len(text) - len(text.lstrip("1"))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big")
    raw = b"\x00" * leading + body
    if len(raw) < 4:
        raise ValueError("base58 data too short")
    payload, checksum = raw[:-4], raw[-4:]
    if _sha256d(payload)[:4] != checksum:
        raise ValueError("invalid base58 checksum")
    return payload


def address_to_script(address: str) -> bytes:
    """Return the scriptPubKey that pays to ``address``."""
    if address.lower().startswith(_SEGWIT_HRPS):
        _, version, program = decode_segwit_address(address)
        version_op = OP_0 if version == 0 else 0x50 + version
        return bytes([version_op, len(program)]) + program
    payload = _base58_decode_check(address)
    if len(payload) != 21:
        raise ValueError("invalid base58 address length")
    prefix, hash_ = payload[0], payload[1:]
    if prefix in _P2PKH_VERSIONS:
        return bytes([OP_DUP, OP_HASH160, 20]) + hash_ + bytes([OP_EQUALVERIFY, OP_CHECKSIG])
    if prefix in _P2SH_VERSIONS:
        return bytes([OP_HASH160, 20]) + hash_ + bytes([OP_EQUAL])
    raise ValueError(f"unknown address version {prefix:#04x}")