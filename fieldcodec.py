"""
Packing of byte buffers into field elements for ledger storage.

A field element is a big-endian unsigned integer below the BN254 scalar
modulus. At most 31 bytes are stored per field, right-aligned, so the top byte
of the 32-byte representation is always zero and no value can overflow.
"""

from __future__ import annotations

from typing import Iterable, Sequence, Tuple

from errors import FieldOverflowError, OversizeError

# BN254 scalar field, also the base field of the Grumpkin curve
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

FIELD_BYTES = 32
MAX_BYTES_PER_FIELD = 31


def _check_width(bytes_per_field: int) -> None:
    if not 1 <= bytes_per_field <= MAX_BYTES_PER_FIELD:
        raise ValueError(f"bytes_per_field must be between 1 and {MAX_BYTES_PER_FIELD}")


def pack(data: bytes, field_count: int, bytes_per_field: int = MAX_BYTES_PER_FIELD) -> Tuple[int, ...]:
    """
    Split `data` into `field_count` chunks of `bytes_per_field` bytes.
    The buffer is zero-filled on the right up to full capacity, so trailing
    fields are zero once the input is exhausted.
    """
    _check_width(bytes_per_field)
    capacity = field_count * bytes_per_field
    if len(data) > capacity:
        raise OversizeError(f"{len(data)} bytes do not fit in {field_count} fields ({capacity} bytes max)")

    buf = bytes(data).ljust(capacity, b"\0")
    return tuple(
        int.from_bytes(buf[i:i + bytes_per_field], "big")
        for i in range(0, capacity, bytes_per_field)
    )


def unpack(fields: Sequence[int], bytes_per_field: int = MAX_BYTES_PER_FIELD) -> bytes:
    """
    Inverse of pack(). Returns exactly len(fields) * bytes_per_field bytes;
    callers slice off the length they expect.
    """
    _check_width(bytes_per_field)
    out = bytearray()
    limit = 1 << (8 * bytes_per_field)
    for value in fields:
        check_field(value)
        if value >= limit:
            raise FieldOverflowError(f"field value does not fit in {bytes_per_field} bytes")
        out += value.to_bytes(bytes_per_field, "big")
    return bytes(out)


def check_field(value: int) -> int:
    if not isinstance(value, int) or value < 0 or value >= FIELD_MODULUS:
        raise FieldOverflowError(f"not a field element: {value!r}")
    return value


def field_to_bytes(value: int) -> bytes:
    return check_field(value).to_bytes(FIELD_BYTES, "big")


def field_from_bytes(raw: bytes) -> int:
    if len(raw) != FIELD_BYTES:
        raise FieldOverflowError(f"expected {FIELD_BYTES} bytes, got {len(raw)}")
    return check_field(int.from_bytes(raw, "big"))


# ---------------------------
# JSON wire helpers
# ---------------------------

def to_hex(value: int) -> str:
    return "0x" + field_to_bytes(value).hex()


def from_hex(text: str) -> int:
    return check_field(int(text, 16))


def fields_to_hex(fields: Iterable[int]) -> list:
    return [to_hex(v) for v in fields]


def fields_from_hex(items: Iterable[str]) -> Tuple[int, ...]:
    return tuple(from_hex(s) for s in items)
