#!/usr/bin/env python3
"""
ECIES delivery-data encryption for Secret Santa slots.

Workflow:
- A sender derives a Grumpkin keypair from their passphrase and publishes the
  public point for the slot they claim.
- The receiver assigned to that slot encrypts their delivery address to the
  published point with encrypt(); the result is 8 field elements that the
  ledger stores verbatim.
- Once the game is complete, the sender recreates the private scalar from the
  passphrase and recovers the address with decrypt().

Wire format (8 field elements):
- Field 0: ephemeral public key x
- Field 1: ephemeral public key y
- Fields 2-7: 112-byte ciphertext, 31 bytes per field, last two fields zero

Notes:
- ECDH on Grumpkin gives a shared point; SHA-256 over its raw 32-byte x || y
  gives 32 bytes: AES-128 key (first 16) and CBC IV (last 16). There is no
  domain tag in this derivation; it has to stay exactly like this to read
  payloads written by other implementations.
- The plaintext frame is [length byte][data][zero padding] = 112 bytes, which
  is 7 AES blocks, so no cipher padding is involved.
"""

from __future__ import annotations

from typing import Sequence, Tuple

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

import settings
from errors import DecryptionFailure, FieldOverflowError, InvalidLengthError, InvalidPointError, OversizeError
from fieldcodec import field_to_bytes, pack, unpack
from grumpkin import KeyPair, Point, Q, is_on_curve, random_scalar, scalar_mul

CIPHERTEXT_SIZE = 112
MAX_PLAINTEXT_SIZE = CIPHERTEXT_SIZE - 1
BYTES_PER_FIELD = 31
CIPHER_FIELDS = 6
PAYLOAD_FIELDS = 2 + CIPHER_FIELDS

EMPTY_PAYLOAD: Tuple[int, ...] = (0,) * PAYLOAD_FIELDS


# ---------------------------
# Key derivation / helpers
# ---------------------------

def derive_seed_from_password(password: str, *, salt: bytes = settings.KDF_SALT) -> bytes:
    """
    Derive a 64-byte seed from a password using Scrypt.
    The salt is fixed so the same password always gives the same keypair.
    (Use a per-game salt if one passphrase is reused across games.)
    """
    kdf = Scrypt(salt=salt, length=64, n=2**14, r=8, p=1)
    return kdf.derive(password.encode())


def keypair_from_password(password: str, *, salt: bytes = settings.KDF_SALT) -> KeyPair:
    """
    Deterministic Grumpkin keypair for a passphrase. The 64-byte seed is
    reduced modulo the group order, which keeps the bias negligible.
    """
    seed = derive_seed_from_password(password, salt=salt)
    scalar = int.from_bytes(seed, "big") % Q
    return KeyPair.from_scalar(scalar or 1)


def derive_aes_key_and_iv(shared: Point) -> Tuple[bytes, bytes]:
    """
    SHA-256(shared.x || shared.y); first 16 bytes = key, last 16 = IV.
    """
    digest = hashes.Hash(hashes.SHA256())
    digest.update(field_to_bytes(shared.x))
    digest.update(field_to_bytes(shared.y))
    h = digest.finalize()
    return h[:16], h[16:]


def _aes_cbc(key: bytes, iv: bytes, data: bytes, *, decrypt: bool = False) -> bytes:
    cipher = Cipher(algorithms.AES(key), modes.CBC(iv))
    ctx = cipher.decryptor() if decrypt else cipher.encryptor()
    return ctx.update(data) + ctx.finalize()


# ---------------------------
# Encryption
# ---------------------------

def encrypt(plaintext: bytes, recipient: Point) -> Tuple[int, ...]:
    """
    Encrypt up to 111 bytes to `recipient`. Returns the 8-field payload.
    """
    if len(plaintext) > MAX_PLAINTEXT_SIZE:
        raise OversizeError(
            f"delivery data too long (max {MAX_PLAINTEXT_SIZE} bytes, got {len(plaintext)})"
        )
    if recipient.is_infinite:
        raise InvalidPointError("recipient public key is the point at infinity")
    if not is_on_curve(recipient):
        raise InvalidPointError("recipient public key is not on the curve")

    ephemeral = KeyPair.from_scalar(random_scalar())
    shared = scalar_mul(ephemeral.private_scalar, recipient)
    key, iv = derive_aes_key_and_iv(shared)

    frame = bytes([len(plaintext)]) + plaintext
    frame = frame.ljust(CIPHERTEXT_SIZE, b"\0")

    ciphertext = _aes_cbc(key, iv, frame)[:CIPHERTEXT_SIZE]

    return (
        ephemeral.public_point.x,
        ephemeral.public_point.y,
    ) + pack(ciphertext, CIPHER_FIELDS, BYTES_PER_FIELD)


def encrypt_text(message: str, recipient: Point) -> Tuple[int, ...]:
    return encrypt(message.encode("utf-8"), recipient)


# ---------------------------
# Decryption (by slot owner)
# ---------------------------

def decrypt(payload: Sequence[int], private_scalar: int) -> bytes:
    """
    Recover the plaintext bytes from an 8-field payload.

    A wrong key either fails the length check or returns garbage; callers that
    expect text should use decrypt_text(), which also rejects invalid UTF-8.
    """
    if len(payload) != PAYLOAD_FIELDS:
        raise DecryptionFailure(f"expected {PAYLOAD_FIELDS} fields, got {len(payload)}")
    if is_empty(payload):
        raise DecryptionFailure("no delivery data at this slot")

    try:
        ephemeral = Point.from_fields(payload[0], payload[1])
        ciphertext = unpack(payload[2:], BYTES_PER_FIELD)[:CIPHERTEXT_SIZE]
    except (InvalidPointError, FieldOverflowError) as e:
        raise DecryptionFailure(f"malformed payload: {e}") from e

    shared = scalar_mul(private_scalar, ephemeral)
    if shared.is_infinite:
        raise DecryptionFailure()
    key, iv = derive_aes_key_and_iv(shared)

    frame = _aes_cbc(key, iv, ciphertext, decrypt=True)

    length = frame[0]
    if length > MAX_PLAINTEXT_SIZE:
        raise InvalidLengthError(length, MAX_PLAINTEXT_SIZE)
    return frame[1:1 + length]


def decrypt_text(payload: Sequence[int], private_scalar: int) -> str:
    raw = decrypt(payload, private_scalar)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionFailure() from e


def decrypt_with_password(password: str, payload: Sequence[int]) -> str:
    """
    Given the participant's passphrase (used at registration) reconstruct the
    private scalar and decrypt the payload stored at their slot.
    """
    keys = keypair_from_password(password)
    return decrypt_text(payload, keys.private_scalar)


def is_empty(payload: Sequence[int]) -> bool:
    """True iff every field is zero, i.e. nothing was written yet."""
    return all(v == 0 for v in payload)
