import pytest

from errors import AdvanceRejected, WrongPhase
from phases import Action, GamePhaseMachine, Phase, legal_action


def test_legal_action_table():
    assert legal_action(Phase.ENROLLMENT) is Action.ENROLL
    assert legal_action(Phase.SENDER_REGISTRATION) is Action.REGISTER_SENDER
    assert legal_action(Phase.RECEIVER_CLAIM) is Action.CLAIM_RECEIVER
    assert legal_action(Phase.COMPLETED) is Action.REVEAL
    assert Phase.RECEIVER_CLAIM.action is Action.CLAIM_RECEIVER


@pytest.mark.parametrize("phase", list(Phase))
def test_only_one_action_per_phase(phase):
    machine = GamePhaseMachine(phase)
    for action in Action:
        if action is legal_action(phase):
            machine.require(action)
        else:
            with pytest.raises(WrongPhase) as exc:
                machine.require(action)
            assert exc.value.current is phase
    assert machine.phase is phase


@pytest.mark.parametrize("phase", [Phase.ENROLLMENT, Phase.COMPLETED])
def test_register_sender_rejected_outside_its_phase(phase):
    with pytest.raises(WrongPhase) as exc:
        GamePhaseMachine(phase).require(Action.REGISTER_SENDER)
    assert exc.value.expected is Phase.SENDER_REGISTRATION


def test_forward_only_lifecycle():
    m = GamePhaseMachine()
    assert m.phase is Phase.ENROLLMENT
    assert m.advance(participant_count=3, min_participants=3) is Phase.SENDER_REGISTRATION
    assert m.advance(3, 3, sender_count=3) is Phase.RECEIVER_CLAIM
    assert m.advance(3, 3, sender_count=3, receiver_count=3) is Phase.COMPLETED
    with pytest.raises(WrongPhase):
        m.advance(3, 3, 3, 3)
    assert m.phase is Phase.COMPLETED


def test_advance_guards_leave_phase_unchanged():
    m = GamePhaseMachine()
    with pytest.raises(AdvanceRejected):
        m.advance(participant_count=2, min_participants=3)
    assert m.phase is Phase.ENROLLMENT

    m = GamePhaseMachine(Phase.SENDER_REGISTRATION)
    with pytest.raises(AdvanceRejected):
        m.advance(3, 3, sender_count=2)
    assert m.phase is Phase.SENDER_REGISTRATION

    m = GamePhaseMachine(Phase.RECEIVER_CLAIM)
    with pytest.raises(AdvanceRejected):
        m.advance(3, 3, sender_count=3, receiver_count=1)
    assert m.phase is Phase.RECEIVER_CLAIM


def test_phase_values_and_names():
    assert [int(p) for p in Phase] == [1, 2, 3, 4]
    assert Phase.SENDER_REGISTRATION.display_name == "Sender Registration"
