# tests/test_transitions.py
import pytest

from servicedesk.core.constants import QUEUE_TERMINAL_STATES, QueueAction, QueueStatus, TicketStatus
from servicedesk.core.errors import InvalidStateTransition
from servicedesk.services.transitions import (
    QUEUE_TRANSITIONS,
    check_queue_transition,
    check_support_transition,
    queue_action_for,
)

ALLOWED = {
    (QueueStatus.WAITING, QueueAction.CLAIM): QueueStatus.CALLED,
    (QueueStatus.CALLED, QueueAction.START): QueueStatus.IN_SERVICE,
    (QueueStatus.IN_SERVICE, QueueAction.RESOLVE): QueueStatus.DONE,
    (QueueStatus.CALLED, QueueAction.REQUEUE): QueueStatus.WAITING,
    (QueueStatus.IN_SERVICE, QueueAction.REQUEUE): QueueStatus.WAITING,
    (QueueStatus.CALLED, QueueAction.NO_SHOW): QueueStatus.NO_SHOW,
    (QueueStatus.IN_SERVICE, QueueAction.NO_SHOW): QueueStatus.NO_SHOW,
    (QueueStatus.WAITING, QueueAction.CANCEL): QueueStatus.CANCELED,
    (QueueStatus.CALLED, QueueAction.CANCEL): QueueStatus.CANCELED,
    (QueueStatus.IN_SERVICE, QueueAction.CANCEL): QueueStatus.CANCELED,
}


@pytest.mark.parametrize("current", list(QueueStatus))
@pytest.mark.parametrize("action", list(QueueAction))
def test_queue_table_is_exhaustive(current, action):
    expected = ALLOWED.get((current, action))
    if expected is None:
        with pytest.raises(InvalidStateTransition):
            check_queue_transition(current, action)
    else:
        assert check_queue_transition(current, action).target == expected


def test_terminal_states_have_no_exit():
    for state in QUEUE_TERMINAL_STATES:
        for transition in QUEUE_TRANSITIONS.values():
            assert state not in transition.sources


def test_target_status_maps_to_action():
    assert queue_action_for(QueueStatus.WAITING, QueueStatus.CALLED) is QueueAction.CLAIM
    assert queue_action_for(QueueStatus.IN_SERVICE, QueueStatus.WAITING) is QueueAction.REQUEUE
    assert queue_action_for(QueueStatus.CALLED, QueueStatus.CANCELED) is QueueAction.CANCEL

    with pytest.raises(InvalidStateTransition):
        queue_action_for(QueueStatus.WAITING, QueueStatus.DONE)
    with pytest.raises(InvalidStateTransition):
        queue_action_for(QueueStatus.DONE, QueueStatus.WAITING)
    with pytest.raises(InvalidStateTransition):
        queue_action_for(QueueStatus.WAITING, QueueStatus.WAITING)


def test_support_flow_is_linear():
    check_support_transition(TicketStatus.OPEN, TicketStatus.IN_PROGRESS)
    check_support_transition(TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED)
    check_support_transition(TicketStatus.RESOLVED, TicketStatus.CLOSED)

    with pytest.raises(InvalidStateTransition):
        check_support_transition(TicketStatus.OPEN, TicketStatus.CLOSED)
    with pytest.raises(InvalidStateTransition, match="follow-up"):
        check_support_transition(TicketStatus.CLOSED, TicketStatus.OPEN)
