"""Decoding of runestone payloads and the protostones they carry."""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from deezel.primitives import Instruction, ScriptError, Transaction, iter_instructions
from deezel.runestone import MAGIC_NUMBER, OP_RETURN, PROTOCOL_TAG, decode_varint

DIESEL_MINT = (2, 0, 77)


class ProtocolTag(enum.IntEnum):
    """Protocol tags identifying the kind of protostone."""

    DIESEL = 1
    ALKANE = 2
    PROTORUNE = 3
    ALKANE_STATE = 4
    ALKANE_EVENT = 5


class ProtoruneOperation(enum.IntEnum):
    """Operation types of protorune token messages."""

    MINT = 1
    TRANSFER = 2
    BURN = 3
    SPLIT = 4
    JOIN = 5


_ALKANE_CALL_TYPES = {1: "deploy", 2: "call", 3: "upgrade"}


class RunestoneDecodeError(ValueError):
    """Raised when a transaction holds no decodable runestone."""


def decode_integers(payload: bytes) -> list[int]:
    """Decode every varint in ``payload``."""
    payload = bytes(payload)
    integers = []
    pos = 0
    while pos < len(payload):
        try:
            value, length = decode_varint(payload[pos:])
        except ValueError as exc:
            raise RunestoneDecodeError(
                f"Failed to decode varint at position {pos}: {exc}"
            ) from exc
        integers.append(value)
        pos += length
    return integers


def extract_protocol_data(integers: list[int]) -> list[int]:
    """Collect the values of every protocol (tag 13) field."""
    values = []
    pairs = iter(integers)
    for tag in pairs:
        value = next(pairs, None)
        if tag == PROTOCOL_TAG and value is not None:
            values.append(value)
    return values


def extract_all_tags(integers: list[int]) -> dict[str, list[int]]:
    """Group tag/value pairs by tag; a trailing unpaired integer is ignored."""
    tags: dict[str, list[int]] = {}
    pairs = iter(integers)
    for tag in pairs:
        value = next(pairs, None)
        if value is None:
            break
        tags.setdefault(str(tag), []).append(value)
    return tags


def _decode_diesel(message: list[int]) -> dict[str, Any]:
    if tuple(message) == DIESEL_MINT:
        return {
            "type": "DIESEL",
            "operation": "mint",
            "cellpack": {
                "message_type": message[0],
                "reserved": message[1],
                "action": "M",
            },
        }
    return {"type": "DIESEL", "operation": "unknown", "cellpack": message}


def _decode_alkane(message: list[int]) -> dict[str, Any]:
    result: dict[str, Any] = {
        "type": "Alkane",
        "operation": "contract_call",
        "cellpack": message,
    }
    if len(message) >= 2:
        call_type, data = message[0], message[1:]
        cellpack: dict[str, Any] = {
            "call_type": call_type,
            "call_type_name": _ALKANE_CALL_TYPES.get(call_type, "unknown"),
            "data": data,
        }
        if call_type == 2 and len(data) >= 4:
            cellpack["function_selector"] = bytes(data[:4]).hex()
            cellpack["arguments"] = bytes(data[4:]).hex()
        result["cellpack"] = cellpack
    return result


def _decode_protorune(message: list[int]) -> dict[str, Any]:
    result: dict[str, Any] = {
        "type": "Protorune",
        "operation": "token_operation",
        "cellpack": message,
    }
    if len(message) >= 2:
        operation_type, data = message[0], message[1:]
        try:
            operation_name = ProtoruneOperation(operation_type).name.lower()
        except ValueError:
            operation_name = "unknown"
        cellpack: dict[str, Any] = {
            "operation_type": operation_type,
            "operation_name": operation_name,
            "data": data,
        }
        if len(data) >= 3:
            if operation_type == ProtoruneOperation.MINT:
                cellpack["token_details"] = {
                    "token_id": data[0],
                    "amount": data[1],
                    "metadata": data[2:],
                }
            elif operation_type == ProtoruneOperation.TRANSFER:
                cellpack["transfer_details"] = {
                    "token_id": data[0],
                    "amount": data[1],
                    "recipient": bytes(data[2:]).hex(),
                }
        result["cellpack"] = cellpack
    return result


def _decode_alkane_state(message: list[int]) -> dict[str, Any]:
    return {"type": "AlkaneState", "operation": "state_operation", "cellpack": message}


def _decode_alkane_event(message: list[int]) -> dict[str, Any]:
    return {"type": "AlkaneEvent", "operation": "event_operation", "cellpack": message}


_DECODERS: dict[int, Callable[[list[int]], dict[str, Any]]] = {
    ProtocolTag.DIESEL: _decode_diesel,
    ProtocolTag.ALKANE: _decode_alkane,
    ProtocolTag.PROTORUNE: _decode_protorune,
    ProtocolTag.ALKANE_STATE: _decode_alkane_state,
    ProtocolTag.ALKANE_EVENT: _decode_alkane_event,
}


def decode_protostone(protocol_tag: int, message_bytes: Iterable[int]) -> dict[str, Any]:
    """Describe a protostone message according to its protocol tag."""
    message = list(bytes(message_bytes))
    decoder = _DECODERS.get(protocol_tag)
    if decoder is None:
        return {"type": "Unknown", "protocol_tag": protocol_tag, "cellpack": message}
    return decoder(message)


def _is_runestone_header(instructions: Iterator[Instruction]) -> bool:
    try:
        return (
            next(instructions, None) == Instruction(OP_RETURN)
            and next(instructions, None) == Instruction(MAGIC_NUMBER)
        )
    except ScriptError:
        return False


def _payload(instructions: Iterator[Instruction]) -> bytes:
    payload = bytearray()
    try:
        for instruction in instructions:
            if instruction.data is None:
                raise RunestoneDecodeError("Invalid opcode in Runestone payload")
            payload += instruction.data
    except ScriptError as exc:
        raise RunestoneDecodeError("Invalid script in Runestone payload") from exc
    return bytes(payload)


def decode_runestone(tx: Transaction) -> dict[str, Any]:
    """Decode the first runestone output of ``tx`` into a JSON-ready dict."""
    for vout, output in enumerate(tx.outputs):
        instructions = iter_instructions(output.script_pubkey)
        if not _is_runestone_header(instructions):
            continue
        payload = _payload(instructions)
        try:
            integers = decode_integers(payload)
        except RunestoneDecodeError as exc:
            raise RunestoneDecodeError(
                f"Failed to decode integers from Runestone payload: {exc}"
            ) from exc
        protocol_data = extract_protocol_data(integers)
        result: dict[str, Any] = {
            "transaction_id": tx.txid(),
            "output_index": vout,
            "protocol_data": protocol_data,
            "all_tags": extract_all_tags(integers),
        }
        if protocol_data:
            protocol_tag = protocol_data[0]
            message = [value & 0xFF for value in protocol_data[1:]]
            result["protocol_tag"] = protocol_tag
            result["message_bytes"] = message
            result["protostone"] = decode_protostone(protocol_tag, message)
        result["raw_integers"] = integers
        return result
    raise RunestoneDecodeError("No Runestone found in transaction")