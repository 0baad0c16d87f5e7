"""
Drives one participant through a game:

    enroll -> register as sender -> claim receiver slot -> reveal

Every step reads the phase from the ledger and checks it against the phase
machine before doing any work, so nothing is encrypted or submitted for an
action the ledger would reject anyway. The ledger remains the authority.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

import settings
from assignment import nullifier_key, receiver_slot
from errors import DuplicateNullifier, InvalidSlotError, PollCancelled, PollTimeout, SlotUnavailable
from grumpkin import KeyPair
from ledger import GameState, Ledger
from phases import Action, GamePhaseMachine, Phase
from santa import decrypt_text, encrypt_text, is_empty, keypair_from_password

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """
    Per-participant state that would otherwise live in CLI globals.
    The passphrase never leaves this object. The ledger sees the public key
    and the nullifier key derived from the private scalar, never `identity`,
    which is only a local label.
    """

    identity: str
    passphrase: str = field(repr=False)
    game_id: int
    sender_slot: Optional[int] = None
    _keys: Optional[KeyPair] = field(default=None, repr=False)

    @property
    def keys(self) -> KeyPair:
        if self._keys is None:
            self._keys = keypair_from_password(self.passphrase)
        return self._keys

    @property
    def secret(self) -> str:
        """Nullifier key sent to the ledger in place of `identity`."""
        return nullifier_key(self.keys.private_scalar)


class ProtocolOrchestrator:
    def __init__(
        self,
        ledger: Ledger,
        session: Session,
        *,
        poll_interval: float = settings.POLL_INTERVAL,
        poll_attempts: int = settings.POLL_ATTEMPTS,
        claim_attempts: int = settings.CLAIM_ATTEMPTS,
    ):
        self.ledger = ledger
        self.session = session
        self.poll_interval = poll_interval
        self.poll_attempts = poll_attempts
        self.claim_attempts = claim_attempts

    @property
    def game_id(self) -> int:
        return self.session.game_id

    def status(self) -> GameState:
        return self.ledger.get_game_state(self.game_id)

    def _require(self, action: Action) -> GameState:
        state = self.status()
        GamePhaseMachine(state.phase).require(action)
        return state

    # ---------------------------
    # Phase actions
    # ---------------------------

    def enroll(self) -> bool:
        """
        Join the roster. Returns False if this identity was already enrolled.
        """
        self._require(Action.ENROLL)
        try:
            self.ledger.enroll(self.game_id, self.session.secret)
        except DuplicateNullifier:
            logger.info("game %d: already enrolled", self.game_id)
            return False
        return True

    def register_sender(self, slot: Optional[int] = None) -> int:
        """
        Claim a sender slot and publish our public key for it.

        With no slot given, the lowest free slot is taken; losing a race for it
        re-selects from fresh ledger state, up to `claim_attempts` times. An
        explicitly requested slot is never swapped for another.
        """
        state = self._require(Action.REGISTER_SENDER)
        public_key = self.session.keys.public_point

        for attempt in range(1, self.claim_attempts + 1):
            chosen = slot if slot is not None else self._free_slot(state)
            try:
                self.ledger.register_sender(self.game_id, self.session.secret, chosen, public_key)
            except SlotUnavailable:
                if slot is not None:
                    raise
                logger.info("game %d: slot %d taken, re-selecting (attempt %d)", self.game_id, chosen, attempt)
                state = self.status()
                continue
            self.session.sender_slot = chosen
            return chosen

        raise SlotUnavailable(f"no free slot after {self.claim_attempts} attempts")

    @staticmethod
    def _free_slot(state: GameState) -> int:
        taken = set(state.sender_slots)
        for s in range(1, state.participant_count + 1):
            if s not in taken:
                return s
        raise SlotUnavailable("all slots are claimed")

    def receiver_slot(self, participant_count: Optional[int] = None) -> int:
        if self.session.sender_slot is None:
            raise InvalidSlotError("register as a sender first")
        if participant_count is None:
            participant_count = self.ledger.get_participant_count(self.game_id)
        return receiver_slot(self.session.sender_slot, participant_count)

    def claim_receiver(self, delivery_address: str) -> int:
        """
        Encrypt our delivery address to the key published at our assigned
        receiver slot and submit it. Returns that slot.
        """
        state = self._require(Action.CLAIM_RECEIVER)
        target = self.receiver_slot(state.participant_count)

        public_key = self.ledger.get_slot_public_key(self.game_id, target)
        payload = encrypt_text(delivery_address, public_key)

        confirmed = self.ledger.claim_receiver(
            self.game_id, self.session.secret, state.participant_count, payload
        )
        if confirmed != target:
            # ledger derived a different slot: our sender slot is out of date
            logger.warning("game %d: ledger stored payload at slot %d, expected %d",
                           self.game_id, confirmed, target)
        return confirmed

    def reveal(self) -> Optional[str]:
        """
        Decrypt the delivery address written to our own slot, or None if the
        receiver has not written it.
        """
        self._require(Action.REVEAL)
        if self.session.sender_slot is None:
            raise InvalidSlotError("no sender slot in this session")
        payload = self.ledger.get_slot_payload(self.game_id, self.session.sender_slot)
        if is_empty(payload):
            return None
        return decrypt_text(payload, self.session.keys.private_scalar)

    # ---------------------------
    # Polling
    # ---------------------------

    def wait_for_phase(self, target: Phase, cancel: Optional[threading.Event] = None) -> Phase:
        """
        Poll until the game reaches `target` (or later). Bounded by
        poll_attempts; setting `cancel` stops the wait with PollCancelled.
        """
        for attempt in range(self.poll_attempts):
            if cancel is not None and cancel.is_set():
                raise PollCancelled(f"stopped waiting for {target.name}")
            phase = self.ledger.get_phase(self.game_id)
            if phase >= target:
                return phase
            logger.debug("game %d in %s, waiting for %s (%d)", self.game_id, phase.name, target.name, attempt)
            if cancel is not None:
                if cancel.wait(self.poll_interval):
                    raise PollCancelled(f"stopped waiting for {target.name}")
            else:
                time.sleep(self.poll_interval)
        raise PollTimeout(f"game {self.game_id} did not reach {target.name}")

    def play(self, delivery_address: str, cancel: Optional[threading.Event] = None) -> Optional[str]:
        """
        Run the whole flow, waiting for the admin between phases. Returns the
        address this participant has to ship a gift to.
        """
        self.enroll()
        self.wait_for_phase(Phase.SENDER_REGISTRATION, cancel)
        self.register_sender()
        self.wait_for_phase(Phase.RECEIVER_CLAIM, cancel)
        self.claim_receiver(delivery_address)
        self.wait_for_phase(Phase.COMPLETED, cancel)
        return self.reveal()
