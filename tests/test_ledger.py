import json

import pytest

import santa
from assignment import Purpose, nullifier, nullifier_key
from errors import (
    AdvanceRejected,
    DuplicateNullifier,
    GameNotFound,
    InvalidPointError,
    InvalidSlotError,
    LedgerRejection,
    NotAuthorized,
    SlotUnavailable,
    WrongPhase,
)
from fieldcodec import from_hex, to_hex
from grumpkin import KeyPair, Point
from ledger import LocalLedger
from phases import Phase

PLAYERS = ["alice", "bob", "carol"]
KEYS = {name: KeyPair.from_scalar(1000 + i) for i, name in enumerate(PLAYERS)}
SECRETS = {name: nullifier_key(k.private_scalar) for name, k in KEYS.items()}
ALICE, BOB, CAROL = (SECRETS[n] for n in PLAYERS)


def enrolled(ledger, game):
    for name in PLAYERS:
        ledger.enroll(game, SECRETS[name])
    ledger.advance_phase(game, "admin")


def registered(ledger, game):
    enrolled(ledger, game)
    for slot, name in enumerate(PLAYERS, start=1):
        ledger.register_sender(game, SECRETS[name], slot, KEYS[name].public_point)
    ledger.advance_phase(game, "admin")


def test_create_game(ledger):
    assert ledger.next_game_id() == 1
    assert ledger.create_game("admin", 3, 10) == 1
    assert ledger.create_game("admin", 2, 2) == 2
    state = ledger.get_game_state(1)
    assert state.phase is Phase.ENROLLMENT
    assert (state.min_participants, state.max_participants, state.participant_count) == (3, 10, 0)
    assert ledger.get_min_participants(1) == 3
    assert ledger.get_max_participants(2) == 2


@pytest.mark.parametrize("lo,hi", [(1, 5), (4, 3)])
def test_create_game_validates_limits(ledger, lo, hi):
    with pytest.raises(ValueError):
        ledger.create_game("admin", lo, hi)


def test_unknown_game(ledger):
    with pytest.raises(GameNotFound):
        ledger.get_phase(42)


def test_enroll_once_per_identity(ledger, game):
    ledger.enroll(game, ALICE)
    with pytest.raises(DuplicateNullifier):
        ledger.enroll(game, ALICE)
    assert ledger.get_participant_count(game) == 1


def test_enroll_rejects_full_game(ledger):
    game = ledger.create_game("admin", 2, 2)
    ledger.enroll(game, ALICE)
    ledger.enroll(game, BOB)
    with pytest.raises(LedgerRejection):
        ledger.enroll(game, CAROL)


def test_advance_requires_admin_and_min_participants(ledger, game):
    ledger.enroll(game, ALICE)
    with pytest.raises(NotAuthorized):
        ledger.advance_phase(game, ALICE)
    with pytest.raises(AdvanceRejected):
        ledger.advance_phase(game, "admin")
    assert ledger.get_phase(game) is Phase.ENROLLMENT


def test_register_sender_phase_gate(ledger, game):
    ledger.enroll(game, ALICE)
    with pytest.raises(WrongPhase):
        ledger.register_sender(game, ALICE, 1, KEYS["alice"].public_point)
    assert not ledger.is_slot_claimed(game, 1)


def test_first_write_wins(ledger, game):
    enrolled(ledger, game)
    ledger.register_sender(game, ALICE, 1, KEYS["alice"].public_point)
    with pytest.raises(SlotUnavailable):
        ledger.register_sender(game, BOB, 1, KEYS["bob"].public_point)
    assert ledger.get_slot_public_key(game, 1) == KEYS["alice"].public_point
    # bob can still take another slot
    ledger.register_sender(game, BOB, 2, KEYS["bob"].public_point)


def test_one_slot_per_sender(ledger, game):
    enrolled(ledger, game)
    ledger.register_sender(game, ALICE, 1, KEYS["alice"].public_point)
    with pytest.raises(DuplicateNullifier):
        ledger.register_sender(game, ALICE, 2, KEYS["alice"].public_point)
    assert not ledger.is_slot_claimed(game, 2)


def test_register_sender_checks(ledger, game):
    enrolled(ledger, game)
    with pytest.raises(NotAuthorized):
        ledger.register_sender(game, nullifier_key(666), 1, KEYS["alice"].public_point)
    with pytest.raises(InvalidSlotError):
        ledger.register_sender(game, ALICE, 4, KEYS["alice"].public_point)
    with pytest.raises(InvalidPointError):
        ledger.register_sender(game, ALICE, 1, Point(1, 3))


def test_cannot_leave_registration_with_empty_slots(ledger, game):
    enrolled(ledger, game)
    ledger.register_sender(game, ALICE, 1, KEYS["alice"].public_point)
    with pytest.raises(AdvanceRejected):
        ledger.advance_phase(game, "admin")


def test_claim_receiver_writes_to_cyclic_slot(ledger, game):
    registered(ledger, game)
    payload = santa.encrypt_text("alice's address", KEYS["bob"].public_point)
    assert ledger.claim_receiver(game, ALICE, 3, payload) == 2
    assert ledger.get_slot_payload(game, 2) == payload
    assert santa.is_empty(ledger.get_slot_payload(game, 1))


def test_claim_receiver_rejections(ledger, game):
    registered(ledger, game)
    payload = santa.encrypt_text("x", KEYS["bob"].public_point)
    with pytest.raises(LedgerRejection):
        ledger.claim_receiver(game, ALICE, 4, payload)
    with pytest.raises(NotAuthorized):
        ledger.claim_receiver(game, nullifier_key(666), 3, payload)
    with pytest.raises(ValueError):
        ledger.claim_receiver(game, ALICE, 3, santa.EMPTY_PAYLOAD)

    ledger.claim_receiver(game, ALICE, 3, payload)
    with pytest.raises(DuplicateNullifier):
        ledger.claim_receiver(game, ALICE, 3, payload)


def test_claim_receiver_phase_gate(ledger, game):
    enrolled(ledger, game)
    payload = santa.encrypt_text("x", KEYS["bob"].public_point)
    with pytest.raises(WrongPhase):
        ledger.claim_receiver(game, ALICE, 3, payload)


def test_full_game_and_persistence(tmp_path):
    path = str(tmp_path / "ledger.json")
    ledger = LocalLedger(path)
    game = ledger.create_game("admin", 3, 3)
    registered(ledger, game)
    for name in PLAYERS:
        ledger.claim_receiver(game, SECRETS[name], 3, santa.encrypt_text(f"{name} st", Point.generator()))
    assert ledger.advance_phase(game, "admin") is Phase.COMPLETED
    with pytest.raises(WrongPhase):
        ledger.advance_phase(game, "admin")

    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    # neither names nor nullifier keys are stored, only their hashes
    stored = json.dumps(data)
    assert not any(name in stored for name in PLAYERS)
    assert not any(secret in stored for secret in SECRETS.values())

    reloaded = LocalLedger(path)
    assert reloaded.get_game_state(game) == ledger.get_game_state(game)
    assert reloaded.get_slot_public_key(game, 2) == KEYS["bob"].public_point
    assert reloaded.get_slot_payload(game, 1) == ledger.get_slot_payload(game, 1)
    # 3 enrollments, 3 x (sender + slot ownership), 3 receiver claims
    assert len(data["nullifiers"]) == 12
    with pytest.raises(WrongPhase):
        reloaded.claim_receiver(game, ALICE, 3, ledger.get_slot_payload(game, 1))


def _owners_from_public_state(data, game, roster, max_slots):
    """Everything an outsider can try: every roster entry against every slot."""
    public = {from_hex(n) for n in data["nullifiers"]} | {from_hex(k) for k in data["notes"]}
    owners = {}
    for who in roster:
        if nullifier(who, game, 0, Purpose.SENDER_REGISTRATION) in public:
            owners[who] = data["notes"].get(to_hex(nullifier(who, game, 0, Purpose.SENDER_REGISTRATION)))
        for slot in range(1, max_slots + 1):
            if nullifier(who, game, slot, Purpose.SLOT_OWNERSHIP) in public:
                owners[who] = slot
    return owners


def test_slot_owners_cannot_be_linked_from_public_state(tmp_path):
    path = str(tmp_path / "ledger.json")
    ledger = LocalLedger(path)
    game = ledger.create_game("admin", 3, 3)
    keys = {name: KeyPair.generate() for name in PLAYERS}
    secrets = {name: nullifier_key(k.private_scalar) for name, k in keys.items()}
    slots = {"carol": 1, "alice": 2, "bob": 3}

    for name in PLAYERS:
        ledger.enroll(game, secrets[name])
    ledger.advance_phase(game, "admin")
    for name, slot in slots.items():
        ledger.register_sender(game, secrets[name], slot, keys[name].public_point)

    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    # names plus the public scalars (point coordinates) give nothing away
    guesses = list(PLAYERS) + [to_hex(keys[n].public_point.x) for n in PLAYERS]
    assert _owners_from_public_state(data, game, guesses, 3) == {}
    # the same search with the participants' secrets does find them
    found = _owners_from_public_state(data, game, [secrets[n] for n in PLAYERS], 3)
    assert found == {secrets[n]: slots[n] for n in PLAYERS}
