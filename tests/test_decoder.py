import pytest

from deezel.decoder import (
    RunestoneDecodeError,
    decode_integers,
    decode_protostone,
    decode_runestone,
    extract_all_tags,
    extract_protocol_data,
)
from deezel.primitives import Transaction, TxOut
from deezel.runestone import Runestone, encode_varint


def _tx(*scripts: bytes) -> Transaction:
    return Transaction(outputs=[TxOut(0, script) for script in scripts])


def _runestone_script(*integers: int) -> bytes:
    payload = b"".join(encode_varint(i) for i in integers)
    return bytes([0x6A, 0x5D, len(payload)]) + payload


P2WPKH_SCRIPT = bytes([0x00, 0x14]) + bytes(20)


def test_decode_integers_round_trip():
    values = [0, 1, 127, 128, 77, 2**64, 2**128 - 1]
    payload = b"".join(encode_varint(v) for v in values)
    assert decode_integers(payload) == values


def test_decode_integers_empty():
    assert decode_integers(b"") == []


def test_decode_integers_truncated():
    with pytest.raises(RunestoneDecodeError, match="position 1"):
        decode_integers(bytes([0x01, 0x80]))


def test_extract_protocol_data_skips_other_tags():
    assert extract_protocol_data([13, 1, 7, 9, 13, 2, 13]) == [1, 2]


def test_extract_all_tags_groups_and_drops_trailing():
    assert extract_all_tags([13, 1, 7, 9, 13, 2, 5]) == {"13": [1, 2], "7": [9]}


def test_decode_diesel_transaction():
    tx = _tx(P2WPKH_SCRIPT, Runestone.new_diesel().encipher())
    result = decode_runestone(tx)
    assert result["output_index"] == 1
    assert result["transaction_id"] == tx.txid()
    assert result["protocol_data"] == [1, 2, 0, 77]
    assert result["protocol_tag"] == 1
    assert result["message_bytes"] == [2, 0, 77]
    assert result["raw_integers"] == [13, 1, 13, 2, 13, 0, 13, 77]
    assert result["all_tags"] == {"13": [1, 2, 0, 77]}
    assert result["protostone"] == {
        "type": "DIESEL",
        "operation": "mint",
        "cellpack": {"message_type": 2, "reserved": 0, "action": "M"},
    }


def test_runestone_without_protocol_data():
    result = decode_runestone(_tx(_runestone_script(7, 9)))
    assert result["protocol_data"] == []
    assert "protocol_tag" not in result
    assert "protostone" not in result
    assert result["all_tags"] == {"7": [9]}


def test_no_runestone_raises():
    with pytest.raises(RunestoneDecodeError, match="No Runestone"):
        decode_runestone(_tx(P2WPKH_SCRIPT, bytes([0x6A, 0x01, 0x00])))


def test_invalid_opcode_in_payload():
    with pytest.raises(RunestoneDecodeError, match="Invalid opcode"):
        decode_runestone(_tx(bytes([0x6A, 0x5D, 0x01, 0x0D, 0x51])))


def test_truncated_push_in_payload():
    with pytest.raises(RunestoneDecodeError, match="Invalid script"):
        decode_runestone(_tx(bytes([0x6A, 0x5D, 0x05, 0x01])))


def test_bad_varint_in_payload():
    with pytest.raises(RunestoneDecodeError, match="Failed to decode integers"):
        decode_runestone(_tx(bytes([0x6A, 0x5D, 0x01, 0x80])))


def test_diesel_unknown_operation():
    assert decode_protostone(1, [9, 9]) == {
        "type": "DIESEL",
        "operation": "unknown",
        "cellpack": [9, 9],
    }


def test_alkane_contract_call_selector():
    result = decode_protostone(2, [2, 0xDE, 0xAD, 0xBE, 0xEF, 0x01])
    cellpack = result["cellpack"]
    assert result["type"] == "Alkane"
    assert cellpack["call_type_name"] == "call"
    assert cellpack["function_selector"] == "deadbeef"
    assert cellpack["arguments"] == "01"
    assert cellpack["data"] == [0xDE, 0xAD, 0xBE, 0xEF, 0x01]


def test_alkane_short_message_keeps_raw_cellpack():
    assert decode_protostone(2, [1])["cellpack"] == [1]


def test_alkane_deploy_has_no_selector():
    cellpack = decode_protostone(2, [1, 5, 6, 7, 8])["cellpack"]
    assert cellpack["call_type_name"] == "deploy"
    assert "function_selector" not in cellpack


def test_protorune_mint_details():
    cellpack = decode_protostone(3, [1, 4, 10, 20, 30])["cellpack"]
    assert cellpack["operation_name"] == "mint"
    assert cellpack["token_details"] == {"token_id": 4, "amount": 10, "metadata": [20, 30]}


def test_protorune_transfer_details():
    cellpack = decode_protostone(3, [2, 4, 10, 0xAB, 0xCD])["cellpack"]
    assert cellpack["operation_name"] == "transfer"
    assert cellpack["transfer_details"] == {"token_id": 4, "amount": 10, "recipient": "abcd"}


def test_protorune_unknown_operation():
    assert decode_protostone(3, [99, 1])["cellpack"]["operation_name"] == "unknown"


@pytest.mark.parametrize(
    "tag, kind, operation",
    [(4, "AlkaneState", "state_operation"), (5, "AlkaneEvent", "event_operation")],
)
def test_alkane_state_and_event(tag, kind, operation):
    assert decode_protostone(tag, [1, 2]) == {
        "type": kind,
        "operation": operation,
        "cellpack": [1, 2],
    }


def test_unknown_protocol_tag():
    assert decode_protostone(42, b"\x01") == {
        "type": "Unknown",
        "protocol_tag": 42,
        "cellpack": [1],
    }