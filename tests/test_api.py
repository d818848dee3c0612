from __future__ import annotations

import pytest

from datetime import datetime
from sqlalchemy import exc
from slotledger import api
from slotledger.db.ledger import Balance
from slotledger.db.models import Booking
from slotledger.modules import errors


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from slotledger.db.facility import Facility


START = datetime(2024, 3, 4, 9)
END = datetime(2024, 3, 4, 14)


def test_submit_and_approve(fablab: Facility) -> None:
    outcome = api.submit_booking(fablab, 'startup', 'C03M01', START, END)

    assert outcome.ok
    assert outcome.error is None
    assert outcome.value.status == 'pending'
    assert outcome.value.tokens_consumed == 30

    booking_id = outcome.value.id

    outcome = api.transition_booking(fablab, booking_id, 'approved', 'admin')
    assert outcome.ok
    assert outcome.value.status == 'approved'

    # the boundary committed, a rollback changes nothing
    fablab.rollback()

    outcome = api.get_balance(fablab, 'startup')
    assert outcome.ok
    assert outcome.value == Balance(40, 30, 10)

    outcome = api.get_transaction_history(fablab, 'startup')
    assert outcome.ok
    assert [t.amount for t in outcome.value] == [-30]


def test_errors_are_returned(fablab: Facility) -> None:
    outcome = api.submit_booking(fablab, 'startup', None, START, END)

    assert not outcome.ok
    assert outcome.value is None
    assert isinstance(outcome.error, errors.MissingFields)
    assert 'machine_id' in outcome.error.fields

    outcome = api.submit_booking(
        fablab, 'startup', 'C03M01', START, datetime(2024, 3, 4, 18)
    )
    assert isinstance(outcome.error, errors.DurationExceeded)
    assert str(outcome.error) == 'Maximum booking duration is 8 hours'

    outcome = api.submit_booking(
        fablab, 'startup', 'C02M01', START, datetime(2024, 3, 4, 10)
    )
    assert isinstance(outcome.error, errors.MachineUnavailable)

    outcome = api.get_balance(fablab, 'nobody')
    assert isinstance(outcome.error, errors.UnknownUser)

    outcome = api.transition_booking(fablab, 1234, 'approved', 'admin')
    assert isinstance(outcome.error, errors.UnknownBooking)


def test_failed_operations_roll_back(fablab: Facility) -> None:
    first = api.submit_booking(fablab, 'startup', 'C03M01', START, END)
    second = api.submit_booking(
        fablab, 'startup', 'C03M01',
        datetime(2024, 3, 5, 9), datetime(2024, 3, 5, 11)
    )

    api.transition_booking(fablab, first.value.id, 'approved', 'admin')

    outcome = api.transition_booking(
        fablab, second.value.id, 'approved', 'admin'
    )

    assert not outcome.ok
    assert isinstance(outcome.error, errors.InsufficientTokens)
    assert str(outcome.error) == 'Insufficient tokens. Required: 12, ' \
                                 'Available: 10'
    assert outcome.error.booking is not None
    assert outcome.error.booking.id == second.value.id

    outcome = api.transition_booking(
        fablab, first.value.id, 'rejected', 'admin'
    )
    assert isinstance(outcome.error, errors.InvalidTransition)
    assert str(outcome.error) == 'Invalid booking transition: ' \
                                 'approved -> rejected'

    outcome = api.transition_booking(
        fablab, second.value.id, 'approved', 'startup'
    )
    assert isinstance(outcome.error, errors.NotAuthorized)

    assert fablab.session.query(Booking).filter_by(status='pending').count() \
        == 1
    assert api.get_balance(fablab, 'startup').value == Balance(40, 30, 10)


def test_token_operations(fablab: Facility) -> None:
    outcome = api.allocate_tokens(fablab, 'startup', 10, 'Top up', 'admin')
    assert outcome.ok
    assert outcome.value.balance_after == 50

    outcome = api.adjust_tokens(fablab, 'startup', -60, 'Too much', 'admin')
    assert isinstance(outcome.error, errors.InsufficientTokens)

    outcome = api.allocate_tokens(fablab, 'startup', 10, 'Myself', 'startup')
    assert isinstance(outcome.error, errors.NotAuthorized)

    outcome = api.adjust_tokens(fablab, 'startup', -5, 'Fee', 'keeper')
    assert outcome.ok

    assert api.get_balance(fablab, 'startup').value == Balance(45, 0, 45)


def test_failed_commits_are_returned(
    fablab: Facility,
    monkeypatch: pytest.MonkeyPatch
) -> None:

    booking = api.submit_booking(fablab, 'startup', 'C03M01', START, END)

    # the commit of the losing side of two concurrent approvals
    def commit() -> None:
        raise exc.OperationalError(
            'COMMIT', {}, Exception('could not serialize access')
        )

    monkeypatch.setattr(fablab, 'commit', commit)

    outcome = api.transition_booking(
        fablab, booking.value.id, 'approved', 'admin'
    )

    assert not outcome.ok
    assert isinstance(outcome.error, errors.PersistenceInconsistency)
    assert isinstance(outcome.error.__cause__, exc.OperationalError)

    monkeypatch.undo()

    # the approval was rolled back
    assert fablab.booking_by_id(booking.value.id).status == 'pending'
    assert api.get_balance(fablab, 'startup').value == Balance(40, 0, 40)
    assert api.get_transaction_history(fablab, 'startup').value == []


def test_transaction_history_by_type(fablab: Facility) -> None:
    api.allocate_tokens(fablab, 'startup', 10, 'Top up', 'admin')
    booking = api.submit_booking(fablab, 'startup', 'C03M01', START, END)
    api.transition_booking(fablab, booking.value.id, 'approved', 'admin')

    outcome = api.get_transaction_history(fablab, 'startup', 'allocated')
    assert outcome.ok
    assert [t.amount for t in outcome.value] == [10]

    outcome = api.get_transaction_history(fablab, 'startup')
    assert [t.transaction_type for t in outcome.value] == [
        'consumed', 'allocated'
    ]

    outcome = api.get_transaction_totals(fablab, 'startup')
    assert outcome.value['consumed'] == -30
    assert outcome.value['allocated'] == 10

    outcome = api.get_transaction_totals(fablab, 'nobody')
    assert isinstance(outcome.error, errors.UnknownUser)
