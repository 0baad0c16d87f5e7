"""
Game lifecycle: four phases, forward only, one participant action per phase.

    ENROLLMENT -> SENDER_REGISTRATION -> RECEIVER_CLAIM -> COMPLETED

The ledger is the authority on phase; this machine mirrors its rules so a
client can refuse an illegal action before doing any encryption work.
"""

from __future__ import annotations

import enum
import logging

from errors import AdvanceRejected, WrongPhase

logger = logging.getLogger(__name__)


class Phase(enum.IntEnum):
    # values match the on-ledger encoding
    ENROLLMENT = 1
    SENDER_REGISTRATION = 2
    RECEIVER_CLAIM = 3
    COMPLETED = 4

    @property
    def display_name(self) -> str:
        return PHASE_NAMES[self]

    @property
    def action(self) -> "Action":
        return LEGAL_ACTIONS[self]


PHASE_NAMES = {
    Phase.ENROLLMENT: "Enrollment",
    Phase.SENDER_REGISTRATION: "Sender Registration",
    Phase.RECEIVER_CLAIM: "Receiver Claim",
    Phase.COMPLETED: "Completed",
}


class Action(enum.Enum):
    ENROLL = "enroll"
    REGISTER_SENDER = "register_sender"
    CLAIM_RECEIVER = "claim_receiver"
    REVEAL = "reveal"


LEGAL_ACTIONS = {
    Phase.ENROLLMENT: Action.ENROLL,
    Phase.SENDER_REGISTRATION: Action.REGISTER_SENDER,
    Phase.RECEIVER_CLAIM: Action.CLAIM_RECEIVER,
    Phase.COMPLETED: Action.REVEAL,
}

PHASE_FOR_ACTION = {action: phase for phase, action in LEGAL_ACTIONS.items()}


def legal_action(phase: Phase) -> Action:
    return LEGAL_ACTIONS[Phase(phase)]


class GamePhaseMachine:
    """
    Tracks one game's phase.

    require() raises WrongPhase without touching state. advance() moves exactly
    one step, and only when the counts passed in satisfy the exit condition of
    the current phase:

    - ENROLLMENT: at least min_participants enrolled
    - SENDER_REGISTRATION: every participant holds a slot
    - RECEIVER_CLAIM: every slot has delivery data
    """

    def __init__(self, phase: Phase = Phase.ENROLLMENT):
        self.phase = Phase(phase)

    def __repr__(self) -> str:
        return f"GamePhaseMachine({self.phase.name})"

    def is_allowed(self, action: Action) -> bool:
        return LEGAL_ACTIONS[self.phase] is action

    def require(self, action: Action) -> None:
        if not self.is_allowed(action):
            expected = PHASE_FOR_ACTION[action]
            raise WrongPhase(
                f"cannot {action.value} during {self.phase.display_name} "
                f"(allowed during {expected.display_name})",
                current=self.phase,
                expected=expected,
            )

    def next_phase(self) -> Phase:
        if self.phase is Phase.COMPLETED:
            raise WrongPhase("game is already completed", current=self.phase)
        return Phase(self.phase + 1)

    def check_advance(
        self,
        participant_count: int,
        min_participants: int,
        sender_count: int,
        receiver_count: int,
    ) -> Phase:
        """Phase that advance() would move to; raises if it can't move."""
        target = self.next_phase()
        if self.phase is Phase.ENROLLMENT and participant_count < min_participants:
            raise AdvanceRejected(
                f"only {participant_count} of {min_participants} required participants enrolled"
            )
        if self.phase is Phase.SENDER_REGISTRATION and sender_count != participant_count:
            raise AdvanceRejected(
                f"{sender_count} of {participant_count} senders registered"
            )
        if self.phase is Phase.RECEIVER_CLAIM and receiver_count != participant_count:
            raise AdvanceRejected(
                f"{receiver_count} of {participant_count} receivers claimed"
            )
        return target

    def advance(
        self,
        participant_count: int,
        min_participants: int,
        sender_count: int = 0,
        receiver_count: int = 0,
    ) -> Phase:
        target = self.check_advance(participant_count, min_participants, sender_count, receiver_count)
        logger.debug("phase %s -> %s", self.phase.name, target.name)
        self.phase = target
        return target
