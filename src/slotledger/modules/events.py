""" Events are called by the :class:`slotledger.db.facility.Facility`
whenever something interesting occurs.

The implementation is very simple:

To add an event::

    from slotledger.modules import events

    def on_booking_approved(context, booking, transaction):
        pass

    events.on_booking_approved.append(on_booking_approved)

To remove the same event::

    events.on_booking_approved.remove(on_booking_approved)

Events are called in the order they were added.
"""
from __future__ import annotations


from typing import overload
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from typing_extensions import ParamSpec

    from slotledger.context.core import Context
    from slotledger.db.models import Booking, TokenTransaction

    _P = ParamSpec('_P')


class Event(list['Callable[_P, object]']):
    """Event subscription. By http://stackoverflow.com/a/2022629

    A list of callable objects. Calling an instance of this will cause a
    call to each item in the list in ascending order by index.

    """
    @overload
    def __init__(self, f: type[Callable[_P, object]]) -> None: ...
    @overload
    def __init__(self) -> None: ...

    def __init__(self, f: object = None) -> None:
        return

    def __call__(self, *args: _P.args, **kwargs: _P.kwargs) -> None:
        for f in self:
            f(*args, **kwargs)


on_booking_submitted: Event[Context, Booking] = Event()
""" Called when a booking request passed validation and was added, with the
following arguments:

    :context:
        The :class:`slotledger.context.core.Context` used when adding the
        booking.

    :booking:
        The pending :class:`slotledger.db.models.Booking`.

"""

on_booking_approved: Event[Context, Booking, TokenTransaction] = Event()
""" Called when a booking is approved, with the following arguments:

    :context:
        The :class:`slotledger.context.core.Context` used when approving.

    :booking:
        The approved :class:`slotledger.db.models.Booking`.

    :transaction:
        The ``consumed`` :class:`slotledger.db.models.TokenTransaction`
        charging the booking.

"""

on_booking_rejected: Event[Context, Booking] = Event()
""" Called when a pending booking is rejected, with the following arguments:

    :context:
        The :class:`slotledger.context.core.Context` used when rejecting.

    :booking:
        The rejected :class:`slotledger.db.models.Booking`.

"""

on_booking_cancelled: Event[Context, Booking, 'TokenTransaction | None']
on_booking_cancelled = Event()
""" Called when a booking is cancelled, with the following arguments:

    :context:
        The :class:`slotledger.context.core.Context` used when cancelling.

    :booking:
        The cancelled :class:`slotledger.db.models.Booking`.

    :transaction:
        The ``refunded`` transaction if the booking had been approved,
        None if it was still pending.

"""

on_tokens_changed: Event[Context, TokenTransaction] = Event()
""" Called when an administrator allocates, adjusts or expires tokens, with
the following arguments:

    :context:
        The :class:`slotledger.context.core.Context` used.

    :transaction:
        The :class:`slotledger.db.models.TokenTransaction` recording the
        change.

"""
