"""
Centralised constants for the service desk.
Removes magic strings and provides strong typing for shared values.
"""

from enum import Enum, unique


@unique
class QueueStatus(str, Enum):
    """Lifecycle of a visitor queue ticket."""

    WAITING = "WAITING"
    CALLED = "CALLED"
    IN_SERVICE = "IN_SERVICE"
    DONE = "DONE"
    NO_SHOW = "NO_SHOW"
    CANCELED = "CANCELED"


@unique
class QueueAction(str, Enum):
    """Transition names; the value is the action label sent to subscribers."""

    CLAIM = "claim"
    START = "start"
    RESOLVE = "resolve"
    REQUEUE = "requeue"
    NO_SHOW = "no-show"
    CANCEL = "cancel"


@unique
class TicketStatus(str, Enum):
    """Lifecycle of a staff-created support ticket."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


@unique
class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@unique
class UserRole(str, Enum):
    SUPERVISOR = "Supervisor"
    CUSTOMER_SERVICE = "CustomerService"


@unique
class TicketKind(str, Enum):
    """Which ticket table a history entry points at."""

    QUEUE = "queue"
    SUPPORT = "support"


@unique
class HistoryAction(str, Enum):
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    UPDATED = "updated"
    FOLLOW_UP = "follow_up"
    DELETED = "deleted"


# Fanout actions that are not state transitions
EVENT_CREATE = "create"
EVENT_DELETE = "delete"

QUEUE_TERMINAL_STATES = frozenset(
    {QueueStatus.DONE, QueueStatus.NO_SHOW, QueueStatus.CANCELED}
)
QUEUE_ACTIVE_STATES = frozenset(
    {QueueStatus.WAITING, QueueStatus.CALLED, QueueStatus.IN_SERVICE}
)
