# servicedesk/services/transitions.py
"""
Status state machines for queue tickets and support tickets.

Queue flavor:
    WAITING -> CALLED -> IN_SERVICE -> DONE
    CALLED | IN_SERVICE -> WAITING         (requeue, back of the line)
    CALLED | IN_SERVICE -> NO_SHOW
    WAITING | CALLED | IN_SERVICE -> CANCELED
DONE, NO_SHOW and CANCELED are terminal.

Support flavor:
    open -> in_progress -> resolved -> closed
closed is terminal; a closed case is reopened by creating a follow-up ticket.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet

from ..core.constants import (
    QUEUE_TERMINAL_STATES,
    QueueAction,
    QueueStatus,
    TicketStatus,
)
from ..core.errors import InvalidStateTransition


@dataclass(frozen=True)
class Transition:
    action: QueueAction
    sources: FrozenSet[QueueStatus]
    target: QueueStatus


QUEUE_TRANSITIONS: Dict[QueueAction, Transition] = {
    QueueAction.CLAIM: Transition(
        QueueAction.CLAIM, frozenset({QueueStatus.WAITING}), QueueStatus.CALLED
    ),
    QueueAction.START: Transition(
        QueueAction.START, frozenset({QueueStatus.CALLED}), QueueStatus.IN_SERVICE
    ),
    QueueAction.RESOLVE: Transition(
        QueueAction.RESOLVE, frozenset({QueueStatus.IN_SERVICE}), QueueStatus.DONE
    ),
    QueueAction.REQUEUE: Transition(
        QueueAction.REQUEUE,
        frozenset({QueueStatus.CALLED, QueueStatus.IN_SERVICE}),
        QueueStatus.WAITING,
    ),
    QueueAction.NO_SHOW: Transition(
        QueueAction.NO_SHOW,
        frozenset({QueueStatus.CALLED, QueueStatus.IN_SERVICE}),
        QueueStatus.NO_SHOW,
    ),
    QueueAction.CANCEL: Transition(
        QueueAction.CANCEL,
        frozenset({QueueStatus.WAITING, QueueStatus.CALLED, QueueStatus.IN_SERVICE}),
        QueueStatus.CANCELED,
    ),
}

SUPPORT_TRANSITIONS: Dict[TicketStatus, FrozenSet[TicketStatus]] = {
    TicketStatus.OPEN: frozenset({TicketStatus.IN_PROGRESS}),
    TicketStatus.IN_PROGRESS: frozenset({TicketStatus.RESOLVED}),
    TicketStatus.RESOLVED: frozenset({TicketStatus.CLOSED}),
    TicketStatus.CLOSED: frozenset(),
}

# Statuses that carry a resolved_at timestamp
QUEUE_RESOLVED_STATES = frozenset({QueueStatus.DONE})
SUPPORT_RESOLVED_STATES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})


def check_queue_transition(current: QueueStatus, action: QueueAction) -> Transition:
    """Returns the transition for `action` or raises InvalidStateTransition."""
    if current in QUEUE_TERMINAL_STATES:
        raise InvalidStateTransition(
            f"Ticket is {current.value}; no further changes are allowed"
        )
    transition = QUEUE_TRANSITIONS[action]
    if current not in transition.sources:
        allowed = ", ".join(sorted(s.value for s in transition.sources))
        raise InvalidStateTransition(
            f"Cannot {action.value} a ticket that is {current.value} (expected {allowed})"
        )
    return transition


def queue_action_for(current: QueueStatus, target: QueueStatus) -> QueueAction:
    """Maps a requested target status to the action that reaches it from `current`."""
    if current in QUEUE_TERMINAL_STATES:
        raise InvalidStateTransition(
            f"Ticket is {current.value}; no further changes are allowed"
        )
    for transition in QUEUE_TRANSITIONS.values():
        if transition.target == target and current in transition.sources:
            return transition.action
    raise InvalidStateTransition(
        f"Cannot move a ticket from {current.value} to {target.value}"
    )


def check_support_transition(current: TicketStatus, target: TicketStatus) -> None:
    if target not in SUPPORT_TRANSITIONS[current]:
        if not SUPPORT_TRANSITIONS[current]:
            raise InvalidStateTransition(
                f"Ticket is {current.value}; create a follow-up ticket instead"
            )
        raise InvalidStateTransition(
            f"Cannot move a ticket from {current.value} to {target.value}"
        )
