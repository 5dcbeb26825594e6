import pytest

from deezel.keys import HARDENED, ExtendedPublicKey, KeyError_, WpkhDescriptor, hash160
from deezel.primitives import address_to_script, decode_segwit_address

TPUB = (
    "tpubDDYkZojQFQjht8Tm4jsS3iuEmKjTiEGjG6KnuFNKKJb5A6ZUCUZKdvLdSDWofKi4ToRCwb9poe1X"
    "dqfUnP4jaJjCB2Zwv11ZLgSbnZSNecE"
)
DESCRIPTOR = f"wpkh([c258d2e4/84h/1h/0h]{TPUB}/0/*)"

BIP32_V2_MASTER = (
    "xpub661MyMwAqRbcFW31YEwpkMuc5THy2PSt5bDMsktWQcFF8syAmRUapSCGu8ED9W6oDMSgv6Zz8idoc4a6"
    "mr8BDzTJY47LJhkJ8UB7WEGuduB"
)
BIP32_V2_CHILD_0 = (
    "xpub69H7F5d8KSRgmmdJg2KhpAK8SR3DjMwAdkxj3ZuxV27CprR9LgpeyGmXUbC6wb7ERfvrnKZjXoUmmDzne"
    "zpbZb7ap6r1D3tgFxHmwMkQTPH"
)


def test_hash160_of_empty_input():
    assert hash160(b"") == bytes.fromhex("b472a266d0bd89c13706a4132ccfb16f7c3b9fcb")


def test_parse_round_trips_and_reads_fields():
    key = ExtendedPublicKey.parse(TPUB)
    assert str(key) == TPUB
    assert key.is_testnet
    assert len(key.public_key) == 33
    assert key.public_key[0] in (2, 3)
    assert len(key.chain_code) == 32


def test_bip32_vector_public_derivation():
    master = ExtendedPublicKey.parse(BIP32_V2_MASTER)
    assert master.depth == 0
    assert not master.is_testnet
    assert str(master.derive_child(0)) == BIP32_V2_CHILD_0


def test_derive_child_invariants():
    parent = ExtendedPublicKey.parse(TPUB)
    child = parent.derive_child(5)
    assert child.depth == parent.depth + 1
    assert child.parent_fingerprint == hash160(parent.public_key)[:4]
    assert child.child_number == 5
    assert child.version == parent.version
    assert ExtendedPublicKey.parse(str(child)) == child
    assert parent.derive_child(5) == child
    assert parent.derive_child(6).public_key != child.public_key


def test_hardened_derivation_is_rejected():
    key = ExtendedPublicKey.parse(TPUB)
    with pytest.raises(KeyError_):
        key.derive_child(HARDENED)


def test_bad_checksum_is_rejected():
    corrupted = TPUB[:-1] + ("F" if TPUB[-1] != "F" else "G")
    with pytest.raises(KeyError_):
        ExtendedPublicKey.parse(corrupted)


def test_descriptor_fields():
    descriptor = WpkhDescriptor.parse(DESCRIPTOR)
    assert descriptor.origin_fingerprint == bytes.fromhex("c258d2e4")
    assert descriptor.origin_path == (84 + HARDENED, 1 + HARDENED, 0 + HARDENED)
    assert descriptor.path == (0,)
    assert descriptor.wildcard is True
    assert descriptor.key.depth == len(descriptor.origin_path)
    assert descriptor.key.child_number == descriptor.origin_path[-1]


def test_address_and_script_agree():
    descriptor = WpkhDescriptor.parse(DESCRIPTOR)
    address = descriptor.address_at(0, "tb")
    hrp, version, program = decode_segwit_address(address)
    assert (hrp, version) == ("tb", 0)
    script = descriptor.script_at(0)
    assert script == bytes([0, 20]) + program
    assert address_to_script(address) == script
    assert descriptor.script_at(1) != script


def test_address_follows_wildcard_and_path():
    descriptor = WpkhDescriptor.parse(DESCRIPTOR)
    expected_key = descriptor.key.derive_child(0).derive_child(3).public_key
    _, _, program = decode_segwit_address(descriptor.address_at(3, "bcrt"))
    assert program == hash160(expected_key)


@pytest.mark.parametrize(
    "text",
    [
        f"pkh({TPUB}/0/*)",
        f"wpkh({TPUB}/0/*",
        f"wpkh({TPUB}/0h/*)",
        f"wpkh([zz58d2e4/84h]{TPUB}/0/*)",
        f"wpkh([c258d2e4/84x]{TPUB}/0/*)",
        f"wpkh([c258d2e4/84h{TPUB}/0/*)",
    ],
)
def test_invalid_descriptors(text):
    with pytest.raises(KeyError_):
        WpkhDescriptor.parse(text)