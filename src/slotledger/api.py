""" The boundary used by user interfaces, command lines and web handlers.

Each function runs one operation of a :class:`~slotledger.db.facility.Facility`
as a unit: it commits if the operation succeeds and rolls back if it fails.
Failures are returned, not raised, so callers can branch on the kind of
error to build a message for the user::

    outcome = api.submit_booking(facility, 'startup-1', 'C01M01', start, end)

    if not outcome.ok:
        if isinstance(outcome.error, errors.InsufficientTokens):
            ...
        return str(outcome.error)

Only errors of slotledger itself are returned. Anything else is a bug or an
outage and is raised as usual.

"""
from __future__ import annotations

import logging

from sqlalchemy import exc

from slotledger.modules import errors


from typing import Any
from typing import NamedTuple
from typing import TypeVar
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from slotledger.db.facility import Facility
    from slotledger.db.models import TokenTransaction
    from slotledger.db.models.booking import BookingStatus
    from slotledger.db.models.transaction import TransactionType

_T = TypeVar('_T')


log = logging.getLogger('slotledger')


class Outcome(NamedTuple):
    value: Any
    error: errors.SlotLedgerError | None

    @property
    def ok(self) -> bool:
        return self.error is None


def run(
    facility: Facility,
    operation: Callable[..., _T],
    *args: Any,
    **kwargs: Any
) -> Outcome:
    """ Runs the operation, committing on success and rolling back on any
    slotledger error.

    Database errors, including the serialization failures PostgreSQL raises
    when committing the losing side of two concurrent balance changes, are
    returned as :class:`~slotledger.modules.errors.PersistenceInconsistency`.
    They are not retried.

    """

    try:
        value = operation(*args, **kwargs)
        facility.commit()
    except errors.SlotLedgerError as e:
        facility.rollback()
        log.debug('%s failed: %r', operation.__name__, e)
        return Outcome(None, e)
    except exc.SQLAlchemyError as e:
        facility.rollback()
        log.error(
            '%s could not be committed, nothing was written: %s',
            operation.__name__, e
        )
        error = errors.PersistenceInconsistency(
            f'{operation.__name__} could not be committed'
        )
        error.__cause__ = e
        return Outcome(None, error)

    return Outcome(value, None)


def submit_booking(
    facility: Facility,
    user_id: str,
    machine_id: str | None,
    start: datetime | None,
    end: datetime | None,
    booking_type: str = 'weekly_planning',
    justification: str | None = None
) -> Outcome:

    return run(
        facility, facility.submit_booking,
        user_id, machine_id, start, end, booking_type, justification
    )


def transition_booking(
    facility: Facility,
    booking_id: int,
    target_status: BookingStatus,
    acting_user_id: str
) -> Outcome:

    return run(
        facility, facility.transition_booking,
        booking_id, target_status, acting_user_id
    )


def get_balance(facility: Facility, user_id: str) -> Outcome:
    return run(facility, facility.get_balance, user_id)


def get_transaction_history(
    facility: Facility,
    user_id: str,
    transaction_type: TransactionType | None = None
) -> Outcome:

    def history() -> list[TokenTransaction]:
        return facility.get_transaction_history(
            user_id, transaction_type
        ).all()

    return run(facility, history)


def get_transaction_totals(facility: Facility, user_id: str) -> Outcome:
    return run(facility, facility.get_transaction_totals, user_id)


def allocate_tokens(
    facility: Facility,
    user_id: str,
    amount: int,
    description: str,
    acting_user_id: str
) -> Outcome:

    return run(
        facility, facility.allocate_tokens,
        user_id, amount, description, acting_user_id
    )


def adjust_tokens(
    facility: Facility,
    user_id: str,
    amount: int,
    description: str,
    acting_user_id: str
) -> Outcome:

    return run(
        facility, facility.adjust_tokens,
        user_id, amount, description, acting_user_id
    )
