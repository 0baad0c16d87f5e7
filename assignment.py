"""
Slot assignment and nullifier derivation.

Receivers are not free to choose a slot: the sender of slot k always writes to
slot (k mod N) + 1. That fixed N-cycle has no fixed points for N >= 2, so
nobody can be assigned to themselves and no one can be left with only their
own slot to claim.
"""

from __future__ import annotations

import enum
from typing import Dict, Union

import nacl.encoding
import nacl.hash

from errors import InvalidSlotError
from fieldcodec import FIELD_MODULUS


def receiver_slot(sender_slot: int, participant_count: int) -> int:
    """
    Slot that the sender of `sender_slot` writes their delivery data to.
    """
    if participant_count < 2:
        raise InvalidSlotError(f"need at least 2 participants, got {participant_count}")
    if not 1 <= sender_slot <= participant_count:
        raise InvalidSlotError(f"slot {sender_slot} outside 1..{participant_count}")
    return (sender_slot % participant_count) + 1


def assignment_cycle(participant_count: int) -> Dict[int, int]:
    """
    Full {sender_slot: receiver_slot} mapping, e.g. N=3 -> {1: 2, 2: 3, 3: 1}.
    """
    return {s: receiver_slot(s, participant_count) for s in range(1, participant_count + 1)}


# ---------------------------
# Nullifiers
# ---------------------------

class Purpose(enum.Enum):
    """Domain tags; each is used as the BLAKE2b personalisation (<= 16 bytes)."""

    NULLIFIER_KEY = b"santa/nullkey"
    ENROLLMENT = b"santa/enroll"
    SENDER_REGISTRATION = b"santa/sender"
    RECEIVER_CLAIM = b"santa/receiver"
    # pushed for one's own slot at registration so claiming it again collides
    SLOT_OWNERSHIP = b"santa/owner"


def _identity_bytes(identity: Union[str, bytes]) -> bytes:
    if isinstance(identity, str):
        return identity.encode("utf-8")
    return bytes(identity)


def nullifier(identity: Union[str, bytes], game_id: int, slot: int, purpose: Purpose) -> int:
    """
    Domain-separated hash of (identity, game_id, slot, purpose) as a field
    element. Use slot 0 for nullifiers that are not tied to a slot.

    `identity` must be a participant secret such as nullifier_key(); anything
    guessable here lets readers of the nullifier set link slots to people.
    """
    data = game_id.to_bytes(32, "big") + slot.to_bytes(32, "big") + _identity_bytes(identity)
    digest = nacl.hash.blake2b(
        data,
        digest_size=32,
        person=purpose.value,
        encoder=nacl.encoding.RawEncoder,
    )
    return int.from_bytes(digest, "big") % FIELD_MODULUS


def nullifier_key(private_scalar: int) -> str:
    """
    Secret nullifier identity of a participant, derived from their private
    scalar. This (never a display name) is what goes into nullifiers, so the
    public nullifier set cannot be matched against a roster of names.
    """
    digest = nacl.hash.blake2b(
        private_scalar.to_bytes(32, "big"),
        digest_size=32,
        person=Purpose.NULLIFIER_KEY.value,
        encoder=nacl.encoding.HexEncoder,
    )
    return digest.decode("ascii")
