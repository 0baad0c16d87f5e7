"""
Exception taxonomy for the Secret Santa protocol.

Codec and permutation errors are deterministic for a given input and are never
retried. Ledger rejections come from the shared, state-dependent layer; of
those only a lost slot race is worth retrying with a different slot.
"""

from __future__ import annotations

from typing import Dict, Optional, Type


class SantaError(Exception):
    """Base class for every error raised by this project."""


# ---------------------------
# Local (pure computation)
# ---------------------------

class OversizeError(SantaError, ValueError):
    """Plaintext or packing input does not fit the fixed wire format."""


class FieldOverflowError(SantaError, ValueError):
    """A field element is negative, above the modulus or wider than its slot."""


class InvalidPointError(SantaError, ValueError):
    """Coordinates do not describe a point on the curve."""


class InvalidSlotError(SantaError, ValueError):
    """Slot number or participant count outside the legal range."""


class DecryptionFailure(SantaError):
    """Wrong private key or corrupted ciphertext."""

    def __init__(self, message: str = "you are not the intended recipient or data is corrupted"):
        super().__init__(message)


class InvalidLengthError(DecryptionFailure):
    """Decrypted length prefix is out of range."""

    def __init__(self, length: int, maximum: int):
        self.length = length
        self.maximum = maximum
        super().__init__(f"invalid decrypted data: length {length} exceeds max {maximum}")


# ---------------------------
# Phase rules
# ---------------------------

class WrongPhase(SantaError):
    """An action was attempted outside the phase that allows it."""

    def __init__(self, message: str, *, current=None, expected=None):
        self.current = current
        self.expected = expected
        super().__init__(message)


# ---------------------------
# Ledger-level rejections
# ---------------------------

class LedgerRejection(SantaError):
    """The ledger refused a transaction. No local state was changed."""


class SlotUnavailable(LedgerRejection):
    """Slot already taken, or has no published key yet."""


class DuplicateNullifier(LedgerRejection):
    """The transaction re-submits a nullifier the ledger has already seen."""


class NotAuthorized(LedgerRejection):
    """Caller is not allowed to perform this action (e.g. not the admin)."""


class GameNotFound(LedgerRejection):
    """No game with the given id."""


class AdvanceRejected(LedgerRejection):
    """Phase cannot advance yet (not enough participants, slots unfilled)."""


# ---------------------------
# Polling
# ---------------------------

class PollTimeout(SantaError, TimeoutError):
    """The phase did not change within the allotted attempts."""


class PollCancelled(SantaError):
    """Polling was cancelled by the caller."""


_BY_NAME: Dict[str, Type[SantaError]] = {
    cls.__name__: cls
    for cls in (
        OversizeError,
        FieldOverflowError,
        InvalidPointError,
        InvalidSlotError,
        WrongPhase,
        LedgerRejection,
        SlotUnavailable,
        DuplicateNullifier,
        NotAuthorized,
        GameNotFound,
        AdvanceRejected,
    )
}


def error_name(exc: BaseException) -> str:
    return type(exc).__name__


def error_from_name(name: Optional[str], message: str, default: Type[Exception] = LedgerRejection) -> Exception:
    """
    Rebuild a typed error from its class name, as sent over the HTTP surface.
    Unknown names fall back to `default`.
    """
    cls = _BY_NAME.get(name or "", default)
    return cls(message)
