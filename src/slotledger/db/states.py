""" The lifecycle of a booking.

A booking starts out as ``pending``. Administrators approve or reject it,
either side may withdraw it. Approved bookings may still be cancelled,
which refunds their tokens. Rejected and cancelled bookings are final.

"""
from __future__ import annotations

from slotledger.modules import errors


from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing_extensions import TypeAlias

    from slotledger.db.models import Booking, User
    from slotledger.db.models.booking import BookingStatus

LedgerEffect: TypeAlias = Literal['consumed', 'refunded']


TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    'pending': frozenset(('approved', 'rejected', 'cancelled')),
    'approved': frozenset(('cancelled', )),
    'rejected': frozenset(),
    'cancelled': frozenset(),
}

TERMINAL: frozenset[BookingStatus] = frozenset(
    status for status, targets in TRANSITIONS.items() if not targets
)

_EFFECTS: dict[tuple[str, str], LedgerEffect] = {
    ('pending', 'approved'): 'consumed',
    ('approved', 'cancelled'): 'refunded',
}


def is_allowed(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())  # type: ignore[call-overload]


def assert_transition(current: str, target: str) -> None:
    if not is_allowed(current, target):
        raise errors.InvalidTransition(current, target)


def ledger_effect(current: str, target: str) -> LedgerEffect | None:
    """ The kind of token transaction the transition writes, if any. Pending
    bookings were never charged, so only approving and cancelling an
    approved booking touch the ledger.

    """
    return _EFFECTS.get((current, target))


def assert_permitted(
    booking: Booking,
    target: str,
    acting_user: User,
    owner_may_cancel_approved: bool = False
) -> None:

    if acting_user.is_admin:
        return

    if target == 'cancelled' and acting_user.id == booking.user_id:
        if booking.status == 'pending' or owner_may_cancel_approved:
            return

    raise errors.NotAuthorized(acting_user.id, target)
