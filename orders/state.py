"""Order status state machine shared by the customer, kitchen and POS clients.

    PENDING -> PREPARING -> READY -> COMPLETED
       \\           \\          \\
        +-----------+----------+--> CANCELLED

Re-applying the current status is accepted as a no-op so that two clients
racing to apply the same step do not see an error.
"""

from .exceptions import InvalidTransition, OrderValidationError
from .models import Order

Status = Order.Status

TRANSITIONS = {
    Status.PENDING: frozenset({Status.PREPARING, Status.CANCELLED}),
    Status.PREPARING: frozenset({Status.READY, Status.CANCELLED}),
    Status.READY: frozenset({Status.COMPLETED, Status.CANCELLED}),
    Status.COMPLETED: frozenset(),
    Status.CANCELLED: frozenset(),
}

ACTIVE_STATUSES = (Status.PENDING, Status.PREPARING, Status.READY)
TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED)


def parse_status(value):
    try:
        return Status(value)
    except ValueError:
        raise OrderValidationError(f"Unknown order status: {value!r}") from None


def can_transition(current, requested):
    return requested in TRANSITIONS[Status(current)]


def check_transition(current, requested):
    """
    Validate a single status change.

    Returns:
        False if requested equals current (nothing to do), True otherwise

    Raises:
        InvalidTransition: requested is not an outgoing edge of current
    """
    current = Status(current)
    requested = parse_status(requested)
    if requested == current:
        return False
    if not can_transition(current, requested):
        raise InvalidTransition(current, requested)
    return True
