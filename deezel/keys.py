"""Extended public keys and wpkh descriptors for deriving wallet addresses."""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

from Crypto.Hash import RIPEMD160

from deezel.primitives import _BASE58_ALPHABET, _base58_decode_check, _sha256d, encode_segwit_address

HARDENED = 0x80000000
XPUB_VERSION = 0x0488B21E
TPUB_VERSION = 0x043587CF
_PUBLIC_VERSIONS = (XPUB_VERSION, TPUB_VERSION)

_P = 2**256 - 2**32 - 977
_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_G = (
    0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
    0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8,
)

_Point = tuple[int, int] | None


class KeyError_(ValueError):
    """Raised for malformed keys or descriptors, or impossible derivations."""


def hash160(data: bytes) -> bytes:
    """RIPEMD160 of SHA256 of ``data``."""
    return RIPEMD160.new(hashlib.sha256(bytes(data)).digest()).digest()


def _add(a: _Point, b: _Point) -> _Point:
    if a is None:
        return b
    if b is None:
        return a
    (x1, y1), (x2, y2) = a, b
    if x1 == x2:
        if (y1 + y2) % _P == 0:
            return None
        slope = 3 * x1 * x1 * pow(2 * y1, -1, _P) % _P
    else:
        slope = (y2 - y1) * pow(x2 - x1, -1, _P) % _P
    x3 = (slope * slope - x1 - x2) % _P
    return x3, (slope * (x1 - x3) - y1) % _P


def _multiply(scalar: int, point: _Point) -> _Point:
    result: _Point = None
    addend = point
    while scalar:
        if scalar & 1:
            result = _add(result, addend)
        addend = _add(addend, addend)
        scalar >>= 1
    return result


def _decompress(key: bytes) -> tuple[int, int]:
    if len(key) != 33 or key[0] not in (2, 3):
        raise KeyError_("public key must be 33 bytes in compressed form")
    x = int.from_bytes(key[1:], "big")
    if x >= _P:
        raise KeyError_("public key is not on the curve")
    y_squared = (pow(x, 3, _P) + 7) % _P
    y = pow(y_squared, (_P + 1) // 4, _P)
    if y * y % _P != y_squared:
        raise KeyError_("public key is not on the curve")
    if y & 1 != key[0] & 1:
        y = _P - y
    return x, y


def _compress(point: tuple[int, int]) -> bytes:
    x, y = point
    return bytes([2 + (y & 1)]) + x.to_bytes(32, "big")


def _base58_encode(data: bytes) -> str:
    number = int.from_bytes(data, "big")
    chars = []
    while number:
        number, digit = divmod(number, 58)
        chars.append(_BASE58_ALPHABET[digit])
    leading = len(data) - len(data.lstrip(b"\x00"))
    return "1" * leading + "".join(reversed(chars))


@dataclass(frozen=True)
class ExtendedPublicKey:
    """A BIP32 extended public key."""

    version: int
    depth: int
    parent_fingerprint: bytes
    child_number: int
    chain_code: bytes
    public_key: bytes

    @property
    def is_testnet(self) -> bool:
        return self.version == TPUB_VERSION

    @property
    def fingerprint(self) -> bytes:
        return hash160(self.public_key)[:4]

    @classmethod
    def parse(cls, text: str) -> ExtendedPublicKey:
        """Decode a base58check ``xpub``/``tpub`` string."""
        try:
            payload = _base58_decode_check(text)
        except ValueError as exc:
            raise KeyError_(f"invalid extended key: {exc}") from exc
        if len(payload) != 78:
            raise KeyError_(f"extended key must be 78 bytes, got {len(payload)}")
        version = int.from_bytes(payload[:4], "big")
        if version not in _PUBLIC_VERSIONS:
            raise KeyError_(f"unsupported extended key version {version:#010x}")
        public_key = payload[45:78]
        _decompress(public_key)
        return cls(
            version=version,
            depth=payload[4],
            parent_fingerprint=payload[5:9],
            child_number=int.from_bytes(payload[9:13], "big"),
            chain_code=payload[13:45],
            public_key=public_key,
        )

    def derive_child(self, index: int) -> ExtendedPublicKey:
        """Derive the non-hardened child at ``index``."""
        if not 0 <= index < HARDENED:
            raise KeyError_(f"cannot derive child {index} from a public key")
        if self.depth >= 255:
            raise KeyError_("maximum derivation depth exceeded")
        digest = hmac.new(
            self.chain_code, self.public_key + index.to_bytes(4, "big"), hashlib.sha512
        ).digest()
        tweak = int.from_bytes(digest[:32], "big")
        if tweak >= _N:
            raise KeyError_(f"invalid child at index {index}")
        point = _add(_multiply(tweak, _G), _decompress(self.public_key))
        if point is None:
            raise KeyError_(f"invalid child at index {index}")
        return ExtendedPublicKey(
            version=self.version,
            depth=self.depth + 1,
            parent_fingerprint=self.fingerprint,
            child_number=index,
            chain_code=digest[32:],
            public_key=_compress(point),
        )

    def __str__(self) -> str:
        payload = (
            self.version.to_bytes(4, "big")
            + bytes([self.depth])
            + self.parent_fingerprint
            + self.child_number.to_bytes(4, "big")
            + self.chain_code
            + self.public_key
        )
        return _base58_encode(payload + _sha256d(payload)[:4])


def _parse_step(text: str) -> int:
    hardened = text.endswith(("h", "H", "'"))
    digits = text[:-1] if hardened else text
    if not digits.isdigit():
        raise KeyError_(f"invalid derivation step {text!r}")
    value = int(digits)
    if value >= HARDENED:
        raise KeyError_(f"derivation step out of range: {text!r}")
    return value + HARDENED if hardened else value


@dataclass(frozen=True)
class WpkhDescriptor:
    """A ``wpkh(...)`` descriptor over an extended public key."""

    key: ExtendedPublicKey
    origin_fingerprint: bytes | None
    origin_path: tuple[int, ...]
    path: tuple[int, ...]
    wildcard: bool

    @classmethod
    def parse(cls, text: str) -> WpkhDescriptor:
        """Parse ``wpkh([fingerprint/path]xpub/path/*)``."""
        if not (text.startswith("wpkh(") and text.endswith(")")):
            raise KeyError_(f"not a wpkh descriptor: {text!r}")
        inner = text[5:-1]
        origin_fingerprint = None
        origin_path: tuple[int, ...] = ()
        if inner.startswith("["):
            end = inner.find("]")
            if end < 0:
                raise KeyError_("unterminated key origin")
            fingerprint_text, *origin_steps = inner[1:end].split("/")
            try:
                origin_fingerprint = bytes.fromhex(fingerprint_text)
            except ValueError as exc:
                raise KeyError_(f"invalid origin fingerprint {fingerprint_text!r}") from exc
            if len(origin_fingerprint) != 4:
                raise KeyError_(f"invalid origin fingerprint {fingerprint_text!r}")
            origin_path = tuple(_parse_step(step) for step in origin_steps)
            inner = inner[end + 1:]
        key_text, *steps = inner.split("/")
        key = ExtendedPublicKey.parse(key_text)
        wildcard = bool(steps) and steps[-1] == "*"
        if wildcard:
            steps = steps[:-1]
        path = tuple(_parse_step(step) for step in steps)
        if any(step >= HARDENED for step in path):
            raise KeyError_("hardened derivation after a public key is impossible")
        return cls(key, origin_fingerprint, origin_path, path, wildcard)

    def _public_key_at(self, index: int) -> bytes:
        key = self.key
        for step in self.path:
            key = key.derive_child(step)
        if self.wildcard:
            key = key.derive_child(index)
        return key.public_key

    def script_at(self, index: int) -> bytes:
        """The P2WPKH scriptPubKey at ``index``."""
        return bytes([0x00, 20]) + hash160(self._public_key_at(index))

    def address_at(self, index: int, hrp: str) -> str:
        """The bech32 address at ``index`` with human-readable part ``hrp``."""
        return encode_segwit_address(hrp, 0, hash160(self._public_key_at(index)))