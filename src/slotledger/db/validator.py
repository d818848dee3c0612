""" Admission checks for booking requests.

Validation only reads. It may be called (and abandoned) at any time without
side effects, the request is only written once
:meth:`slotledger.db.facility.Facility.submit_booking` adds the draft.

"""
from __future__ import annotations

import sedate

from datetime import timedelta
from slotledger.db.ledger import remaining_tokens
from slotledger.db.models.booking import BOOKING_TYPES
from slotledger.modules import errors
from slotledger.modules import utils


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from sedate.types import TzInfoOrName

    from slotledger.db.models import Booking, Machine, User
    from slotledger.db.models.booking import BookingType


class BookingRequest(NamedTuple):
    user_id: str
    machine_id: str | None
    start: datetime | None
    end: datetime | None
    booking_type: str = 'weekly_planning'
    justification: str | None = None


class BookingDraft(NamedTuple):
    user_id: str
    machine_id: str
    start: datetime
    end: datetime
    booking_type: BookingType
    justification: str | None
    tokens_consumed: int
    status: str = 'pending'


def validate(
    request: BookingRequest,
    user: User,
    machine: Machine | None,
    existing_bookings: Iterable[Booking],
    max_hours: float = 8,
    default_cost: int = 1,
    timezone: TzInfoOrName = 'UTC'
) -> BookingDraft:
    """ Checks the request and returns the booking to create.

    The checks run in a fixed order and the first failing one raises:

    1. machine, start and end are given (:class:`MissingFields`)
    2. the booking type is known (:class:`InvalidBookingType`)
    3. the end lies after the start (:class:`InvalidTimeRange`)
    4. the booking lasts at most ``max_hours`` (:class:`DurationExceeded`)
    5. exceptional bookings are justified (:class:`JustificationRequired`)
    6. the machine exists and is available (:class:`MachineUnavailable`)
    7. the user can afford it (:class:`InsufficientTokens`)

    Only approved bookings count against the user's tokens. Pending ones
    are checked again once they get approved.

    """

    missing = [
        name for name in ('machine_id', 'start', 'end')
        if not getattr(request, name)
    ]

    if missing:
        raise errors.MissingFields(missing)

    if request.booking_type not in BOOKING_TYPES:
        raise errors.InvalidBookingType(request.booking_type)

    assert request.machine_id and request.start and request.end

    start = sedate.standardize_date(request.start, timezone)
    end = sedate.standardize_date(request.end, timezone)
    duration = end - start

    if duration <= timedelta():
        raise errors.InvalidTimeRange

    if duration > timedelta(hours=max_hours):
        raise errors.DurationExceeded(duration / utils.HOUR, max_hours)

    justification = (request.justification or '').strip()

    if request.booking_type == 'same_week_exceptional' and not justification:
        raise errors.JustificationRequired

    if machine is None:
        raise errors.UnknownMachine(request.machine_id)

    if not machine.is_available:
        raise errors.MachineUnavailable(machine.id, machine.status)

    required = utils.tokens_required(
        duration, machine.token_cost(default_cost)
    )
    available = remaining_tokens(user.tokens_given, existing_bookings)

    if required > available:
        raise errors.InsufficientTokens(required, available)

    return BookingDraft(
        user_id=user.id,
        machine_id=machine.id,
        start=start,
        end=end,
        booking_type=request.booking_type,  # type: ignore[arg-type]
        justification=justification or None,
        tokens_consumed=required
    )
