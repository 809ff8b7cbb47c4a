"""
Recursive Length Prefix encoding used to serialize EVM transactions.

Items are byte strings, non-negative integers, or (possibly nested) lists of
items. Integers are encoded as their minimal big-endian byte string, so zero
and the empty byte string share the encoding ``0x80``. Decoding always yields
``bytes`` for scalars.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple, Union

from .errors import RLPDecodingError, RLPEncodingError

__all__ = [
    "RLPItem",
    "decode",
    "encode",
    "int_to_big_endian",
    "big_endian_to_int",
]

RLPItem = Union[bytes, bytearray, int, Sequence["RLPItem"]]

_STRING_OFFSET = 0x80
_LIST_OFFSET = 0xC0
_SHORT_LIMIT = 56


def int_to_big_endian(value: int) -> bytes:
    """Minimal big-endian encoding: no leading zero byte, ``0`` -> ``b""``."""
    if value < 0:
        raise RLPEncodingError(f"Cannot encode negative integer {value}")
    if value == 0:
        return b""
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def big_endian_to_int(data: bytes) -> int:
    return int.from_bytes(data, "big") if data else 0


def _length_prefix(length: int, offset: int) -> bytes:
    if length < _SHORT_LIMIT:
        return bytes([offset + length])
    length_bytes = int_to_big_endian(length)
    return bytes([offset + _SHORT_LIMIT - 1 + len(length_bytes)]) + length_bytes


def encode(item: RLPItem) -> bytes:
    if isinstance(item, bool):
        raise RLPEncodingError("Booleans are not RLP-encodable; pass 0 or 1")
    if isinstance(item, int):
        item = int_to_big_endian(item)
    if isinstance(item, (bytes, bytearray)):
        data = bytes(item)
        if len(data) == 1 and data[0] < _STRING_OFFSET:
            return data
        return _length_prefix(len(data), _STRING_OFFSET) + data
    if isinstance(item, (list, tuple)):
        payload = b"".join(encode(child) for child in item)
        return _length_prefix(len(payload), _LIST_OFFSET) + payload
    raise RLPEncodingError(f"Cannot RLP-encode object of type {type(item).__name__}")


def _read_length(data: bytes, start: int, size: int) -> int:
    end = start + size
    if end > len(data):
        raise RLPDecodingError("Length prefix runs past the end of the input")
    raw = data[start:end]
    if raw[0] == 0:
        raise RLPDecodingError("Length prefix has leading zero bytes")
    length = big_endian_to_int(raw)
    if length < _SHORT_LIMIT:
        raise RLPDecodingError("Long-form length used for a short payload")
    return length


def _decode_at(data: bytes, position: int) -> Tuple[Union[bytes, list], int]:
    """Decode one item starting at ``position``; return it and the next offset."""
    if position >= len(data):
        raise RLPDecodingError("Unexpected end of input")
    prefix = data[position]

    if prefix < _STRING_OFFSET:
        return bytes([prefix]), position + 1

    if prefix < _STRING_OFFSET + _SHORT_LIMIT:
        length = prefix - _STRING_OFFSET
        start = position + 1
        end = start + length
        if end > len(data):
            raise RLPDecodingError("String payload runs past the end of the input")
        value = data[start:end]
        if length == 1 and value[0] < _STRING_OFFSET:
            raise RLPDecodingError("Single byte below 0x80 must not carry a prefix")
        return value, end

    if prefix < _LIST_OFFSET:
        size = prefix - (_STRING_OFFSET + _SHORT_LIMIT - 1)
        length = _read_length(data, position + 1, size)
        start = position + 1 + size
        end = start + length
        if end > len(data):
            raise RLPDecodingError("String payload runs past the end of the input")
        return data[start:end], end

    if prefix < _LIST_OFFSET + _SHORT_LIMIT:
        length = prefix - _LIST_OFFSET
        start = position + 1
    else:
        size = prefix - (_LIST_OFFSET + _SHORT_LIMIT - 1)
        length = _read_length(data, position + 1, size)
        start = position + 1 + size

    end = start + length
    if end > len(data):
        raise RLPDecodingError("List payload runs past the end of the input")
    items: List[Union[bytes, list]] = []
    cursor = start
    while cursor < end:
        child, cursor = _decode_at(data, cursor)
        if cursor > end:
            raise RLPDecodingError("List item overflows its enclosing list")
        items.append(child)
    return items, end


def decode(data: bytes) -> Union[bytes, list]:
    """
    Decode exactly one RLP item from ``data``.

    Non-canonical encodings and trailing bytes are rejected.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise RLPDecodingError(f"Expected bytes, got {type(data).__name__}")
    item, end = _decode_at(bytes(data), 0)
    if end != len(data):
        raise RLPDecodingError(f"Trailing bytes after RLP item ({len(data) - end} extra)")
    return item
