"""
Ledger interface and a local reference ledger.

The real ledger is a ZK contract: it stores public per-slot state, rejects
repeated nullifiers and enforces the phase rules. `Ledger` is the narrow
interface the orchestrator talks to. `LocalLedger` implements the same rules
in-process (optionally persisted to a JSON file) so games can run without a
chain: for local play, tests and the HTTP service in api.py.

Participants are identified to the ledger only by a secret (see
assignment.nullifier_key); display names never reach it. Only the admin is
named, for create_game and advance_phase. The secret itself is never stored:
nullifiers are hashes of it, and LocalLedger keeps each sender's slot as a
note keyed by their sender-registration nullifier, which nobody without the
secret can recompute. A ZK ledger keeps that note in the participant's own
private state; here the secret does pass through the process running the
ledger.
"""

from __future__ import annotations

import abc
import json
import logging
import os
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from assignment import Purpose, nullifier, receiver_slot
from errors import (
    DuplicateNullifier,
    GameNotFound,
    InvalidSlotError,
    LedgerRejection,
    NotAuthorized,
    SlotUnavailable,
)
from fieldcodec import check_field, fields_from_hex, fields_to_hex, from_hex, to_hex
from grumpkin import Point
from phases import Action, GamePhaseMachine, Phase
from santa import EMPTY_PAYLOAD, PAYLOAD_FIELDS, is_empty

logger = logging.getLogger(__name__)

MAX_SLOTS = 1000


@dataclass
class GameState:
    game_id: int
    admin: str
    phase: Phase
    min_participants: int
    max_participants: int
    participant_count: int
    sender_slots: List[int] = field(default_factory=list)
    receiver_slots: List[int] = field(default_factory=list)

    @property
    def sender_count(self) -> int:
        return len(self.sender_slots)

    @property
    def receiver_count(self) -> int:
        return len(self.receiver_slots)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["phase"] = int(self.phase)
        d["phase_name"] = self.phase.display_name
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GameState":
        return cls(
            game_id=int(d["game_id"]),
            admin=d["admin"],
            phase=Phase(int(d["phase"])),
            min_participants=int(d["min_participants"]),
            max_participants=int(d["max_participants"]),
            participant_count=int(d["participant_count"]),
            sender_slots=sorted(int(s) for s in d.get("sender_slots", [])),
            receiver_slots=sorted(int(s) for s in d.get("receiver_slots", [])),
        )


class Ledger(abc.ABC):
    """
    Everything the protocol needs from the ledger. Mutations raise a
    LedgerRejection subclass (or WrongPhase) and leave state untouched.

    `caller` names the admin; `secret` is a participant's nullifier key.
    """

    # ---- queries ----

    @abc.abstractmethod
    def next_game_id(self) -> int: ...

    @abc.abstractmethod
    def get_game_state(self, game_id: int) -> GameState: ...

    @abc.abstractmethod
    def is_slot_claimed(self, game_id: int, slot: int) -> bool: ...

    @abc.abstractmethod
    def get_slot_public_key(self, game_id: int, slot: int) -> Point: ...

    @abc.abstractmethod
    def get_slot_payload(self, game_id: int, slot: int) -> Tuple[int, ...]: ...

    def get_phase(self, game_id: int) -> Phase:
        return self.get_game_state(game_id).phase

    def get_participant_count(self, game_id: int) -> int:
        return self.get_game_state(game_id).participant_count

    def get_max_participants(self, game_id: int) -> int:
        return self.get_game_state(game_id).max_participants

    def get_min_participants(self, game_id: int) -> int:
        return self.get_game_state(game_id).min_participants

    def claimed_slots(self, game_id: int) -> List[int]:
        return self.get_game_state(game_id).sender_slots

    # ---- mutations ----

    @abc.abstractmethod
    def create_game(self, caller: str, min_participants: int, max_participants: int) -> int: ...

    @abc.abstractmethod
    def enroll(self, game_id: int, secret: str) -> None: ...

    @abc.abstractmethod
    def register_sender(self, game_id: int, secret: str, slot: int, public_key: Point) -> None: ...

    @abc.abstractmethod
    def claim_receiver(
        self, game_id: int, secret: str, participant_count: int, payload: Sequence[int]
    ) -> int: ...

    @abc.abstractmethod
    def advance_phase(self, game_id: int, caller: str) -> Phase: ...


# ---------------------------
# Local reference ledger
# ---------------------------

@dataclass
class _Game:
    game_id: int
    admin: str
    min_participants: int
    max_participants: int
    phase: Phase = Phase.ENROLLMENT
    participant_count: int = 0
    keys: Dict[int, Point] = field(default_factory=dict)
    payloads: Dict[int, Tuple[int, ...]] = field(default_factory=dict)

    def state(self) -> GameState:
        return GameState(
            game_id=self.game_id,
            admin=self.admin,
            phase=self.phase,
            min_participants=self.min_participants,
            max_participants=self.max_participants,
            participant_count=self.participant_count,
            sender_slots=sorted(self.keys),
            receiver_slots=sorted(self.payloads),
        )


class LocalLedger(Ledger):
    """
    In-process ledger. With `path` set, state is loaded from and saved to a
    JSON file after every accepted mutation.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self._lock = threading.RLock()
        self._games: Dict[int, _Game] = {}
        self._nullifiers: set = set()
        self._notes: Dict[int, int] = {}
        self._next_game_id = 1
        if path and os.path.exists(path):
            self._load()

    # ---- persistence ----

    def _load(self) -> None:
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self._next_game_id = int(data.get("next_game_id", 1))
        self._nullifiers = {from_hex(n) for n in data.get("nullifiers", [])}
        self._notes = {from_hex(k): int(v) for k, v in data.get("notes", {}).items()}
        for gid, g in data.get("games", {}).items():
            game = _Game(
                game_id=int(gid),
                admin=g["admin"],
                min_participants=int(g["min_participants"]),
                max_participants=int(g["max_participants"]),
                phase=Phase(int(g["phase"])),
                participant_count=int(g["participant_count"]),
            )
            game.keys = {
                int(s): Point(from_hex(xy[0]), from_hex(xy[1])) for s, xy in g.get("keys", {}).items()
            }
            game.payloads = {int(s): fields_from_hex(p) for s, p in g.get("payloads", {}).items()}
            self._games[game.game_id] = game
        logger.info("loaded %d game(s) from %s", len(self._games), self.path)

    def _save(self) -> None:
        if not self.path:
            return
        data = {
            "next_game_id": self._next_game_id,
            "nullifiers": sorted(to_hex(n) for n in self._nullifiers),
            "notes": {to_hex(k): v for k, v in self._notes.items()},
            "games": {
                str(g.game_id): {
                    "admin": g.admin,
                    "min_participants": g.min_participants,
                    "max_participants": g.max_participants,
                    "phase": int(g.phase),
                    "participant_count": g.participant_count,
                    "keys": {str(s): [to_hex(p.x), to_hex(p.y)] for s, p in g.keys.items()},
                    "payloads": {str(s): fields_to_hex(p) for s, p in g.payloads.items()},
                }
                for g in self._games.values()
            },
        }
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp, self.path)

    # ---- helpers ----

    def _game(self, game_id: int) -> _Game:
        try:
            return self._games[int(game_id)]
        except KeyError:
            raise GameNotFound(f"game {game_id} not found") from None

    def _require_unseen(self, *nullifiers: int) -> None:
        for n in nullifiers:
            if n in self._nullifiers:
                raise DuplicateNullifier("nullifier already recorded")

    def _check_slot(self, game: _Game, slot: int) -> None:
        if not 1 <= slot <= game.max_participants:
            raise InvalidSlotError(f"slot {slot} outside 1..{game.max_participants}")

    # ---- queries ----

    def next_game_id(self) -> int:
        with self._lock:
            return self._next_game_id

    def get_game_state(self, game_id: int) -> GameState:
        with self._lock:
            return self._game(game_id).state()

    def is_slot_claimed(self, game_id: int, slot: int) -> bool:
        with self._lock:
            game = self._game(game_id)
            self._check_slot(game, slot)
            return slot in game.keys

    def get_slot_public_key(self, game_id: int, slot: int) -> Point:
        with self._lock:
            game = self._game(game_id)
            self._check_slot(game, slot)
            if slot not in game.keys:
                raise SlotUnavailable(f"slot {slot} has no sender")
            return game.keys[slot]

    def get_slot_payload(self, game_id: int, slot: int) -> Tuple[int, ...]:
        with self._lock:
            game = self._game(game_id)
            self._check_slot(game, slot)
            return game.payloads.get(slot, EMPTY_PAYLOAD)

    # ---- mutations ----

    def create_game(self, caller: str, min_participants: int, max_participants: int) -> int:
        if min_participants < 2:
            raise ValueError("a game needs at least 2 participants")
        if max_participants < min_participants:
            raise ValueError("max_participants must be >= min_participants")
        if max_participants > MAX_SLOTS:
            raise ValueError(f"max_participants must be <= {MAX_SLOTS}")

        with self._lock:
            game_id = self._next_game_id
            self._games[game_id] = _Game(game_id, caller, min_participants, max_participants)
            self._next_game_id += 1
            self._save()
        logger.info("game %d created (%d-%d participants)", game_id, min_participants, max_participants)
        return game_id

    def enroll(self, game_id: int, secret: str) -> None:
        with self._lock:
            game = self._game(game_id)
            GamePhaseMachine(game.phase).require(Action.ENROLL)
            if game.participant_count >= game.max_participants:
                raise LedgerRejection(f"game {game_id} is full")

            n = nullifier(secret, game_id, 0, Purpose.ENROLLMENT)
            self._require_unseen(n)

            self._nullifiers.add(n)
            game.participant_count += 1
            self._save()
        logger.info("game %d: participant enrolled (%d)", game_id, game.participant_count)

    def register_sender(self, game_id: int, secret: str, slot: int, public_key: Point) -> None:
        with self._lock:
            game = self._game(game_id)
            GamePhaseMachine(game.phase).require(Action.REGISTER_SENDER)
            if nullifier(secret, game_id, 0, Purpose.ENROLLMENT) not in self._nullifiers:
                raise NotAuthorized("caller is not enrolled in this game")
            if not 1 <= slot <= game.participant_count:
                raise InvalidSlotError(f"slot {slot} outside 1..{game.participant_count}")
            # raises InvalidPointError
            public_key = Point.from_fields(public_key.x, public_key.y)
            if slot in game.keys:
                raise SlotUnavailable(f"slot {slot} is already claimed")

            sender_n = nullifier(secret, game_id, 0, Purpose.SENDER_REGISTRATION)
            owner_n = nullifier(secret, game_id, slot, Purpose.SLOT_OWNERSHIP)
            self._require_unseen(sender_n, owner_n)

            self._nullifiers.update((sender_n, owner_n))
            self._notes[sender_n] = slot
            game.keys[slot] = public_key
            self._save()
        logger.info("game %d: slot %d claimed by a sender", game_id, slot)

    def claim_receiver(
        self, game_id: int, secret: str, participant_count: int, payload: Sequence[int]
    ) -> int:
        payload = tuple(check_field(int(v)) for v in payload)
        if len(payload) != PAYLOAD_FIELDS:
            raise ValueError(f"payload must have {PAYLOAD_FIELDS} fields")
        if is_empty(payload):
            raise ValueError("payload is empty")

        with self._lock:
            game = self._game(game_id)
            GamePhaseMachine(game.phase).require(Action.CLAIM_RECEIVER)
            if participant_count != game.participant_count:
                raise LedgerRejection(
                    f"participant count mismatch ({participant_count} != {game.participant_count})"
                )

            sender_n = nullifier(secret, game_id, 0, Purpose.SENDER_REGISTRATION)
            own_slot = self._notes.get(sender_n)
            if own_slot is None:
                raise NotAuthorized("caller has not registered as a sender")

            target = receiver_slot(own_slot, participant_count)
            if nullifier(secret, game_id, target, Purpose.SLOT_OWNERSHIP) in self._nullifiers:
                raise DuplicateNullifier("cannot claim your own slot")
            claim_n = nullifier(secret, game_id, 0, Purpose.RECEIVER_CLAIM)
            self._require_unseen(claim_n)
            if target in game.payloads:
                raise SlotUnavailable(f"slot {target} already has delivery data")

            self._nullifiers.add(claim_n)
            game.payloads[target] = payload
            self._save()
        logger.info("game %d: receiver claimed (%d/%d)", game_id, len(game.payloads), participant_count)
        return target

    def advance_phase(self, game_id: int, caller: str) -> Phase:
        with self._lock:
            game = self._game(game_id)
            if caller != game.admin:
                raise NotAuthorized("only the game admin can advance the phase")
            machine = GamePhaseMachine(game.phase)
            game.phase = machine.advance(
                game.participant_count,
                game.min_participants,
                len(game.keys),
                len(game.payloads),
            )
            self._save()
        logger.info("game %d advanced to %s", game_id, game.phase.name)
        return game.phase
