from __future__ import annotations


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from slotledger.db.models import Booking


class SlotLedgerError(Exception):
    __slots__ = ('booking',)
    booking: Booking
    """
    This attribute is not guaranteed to exist
    """

    def __str__(self) -> str:
        return self.message()

    def message(self) -> str:
        return ' '.join(str(arg) for arg in self.args) or type(self).__name__


class ContextAlreadyExists(SlotLedgerError):
    pass


class UnknownContext(SlotLedgerError):
    pass


class ContextIsLocked(SlotLedgerError):
    pass


class UnknownService(SlotLedgerError):
    pass


class ValidationError(SlotLedgerError):
    """ A booking request or ledger operation is malformed or out of
    policy. Always recoverable by correcting the request.

    """


class MissingFields(ValidationError):

    __slots__ = ('fields', )

    def __init__(self, fields: list[str]):
        self.fields = fields

    def message(self) -> str:
        return 'Please fill in all required fields: {}'.format(
            ', '.join(self.fields)
        )


class InvalidTimeRange(ValidationError):

    def message(self) -> str:
        return 'End time must be after start time'


class DurationExceeded(ValidationError):

    __slots__ = ('hours', 'limit')

    def __init__(self, hours: float, limit: float):
        self.hours = hours
        self.limit = limit

    def message(self) -> str:
        return f'Maximum booking duration is {self.limit:g} hours'


class JustificationRequired(ValidationError):

    def message(self) -> str:
        return 'Justification is required for same-week exceptional bookings'


class InvalidBookingType(ValidationError):
    pass


class MachineUnavailable(ValidationError):

    __slots__ = ('machine_id', 'status')

    def __init__(self, machine_id: str, status: str | None = None):
        self.machine_id = machine_id
        self.status = status

    def message(self) -> str:
        return f'Machine {self.machine_id} is not available ({self.status})'


class UnknownMachine(MachineUnavailable):

    def message(self) -> str:
        return f'Machine {self.machine_id} does not exist'


class InsufficientTokens(ValidationError):

    __slots__ = ('required', 'available')

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available

    def message(self) -> str:
        return (
            f'Insufficient tokens. Required: {self.required}, '
            f'Available: {self.available}'
        )


class InvalidAmount(ValidationError):
    pass


class UnknownUser(ValidationError):

    __slots__ = ('user_id', )

    def __init__(self, user_id: str):
        self.user_id = user_id

    def message(self) -> str:
        return f'User {self.user_id} does not exist'


class TransitionError(SlotLedgerError):
    """ An illegal booking status change was requested. Never coerced into
    a different transition.

    """


class InvalidTransition(TransitionError):

    __slots__ = ('current', 'requested')

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested

    def message(self) -> str:
        return (
            f'Invalid booking transition: {self.current} -> {self.requested}'
        )


class NotAuthorized(TransitionError):

    __slots__ = ('user_id', 'requested')

    def __init__(self, user_id: str, requested: str):
        self.user_id = user_id
        self.requested = requested

    def message(self) -> str:
        return (
            f'User {self.user_id} is not allowed to do this: '
            f'{self.requested}'
        )


class UnknownBooking(TransitionError):

    __slots__ = ('booking_id', )

    def __init__(self, booking_id: int):
        self.booking_id = booking_id

    def message(self) -> str:
        return f'Booking {self.booking_id} does not exist'


class PersistenceInconsistency(SlotLedgerError):
    """ The ledger write could not be committed atomically with the
    triggering change. The operation is aborted and never retried.

    """


class ImmutableRecord(SlotLedgerError):

    __slots__ = ('record', 'field')

    def __init__(self, record: object, field: str | None = None):
        self.record = record
        self.field = field

    def message(self) -> str:
        if self.field:
            return f'{self.field} of {self.record!r} may not be changed'
        return f'{self.record!r} may not be changed'
