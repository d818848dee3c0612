from __future__ import annotations

import pytest

from slotledger.db import states
from slotledger.db.models import Booking, User
from slotledger.modules import errors


def new_user(id: str, role: str = 'startup') -> User:
    user = User()
    user.id = id
    user.role = role  # type: ignore[assignment]
    return user


def new_booking(user_id: str, status: str) -> Booking:
    booking = Booking()
    booking.user_id = user_id
    booking.status = status  # type: ignore[assignment]
    return booking


def test_allowed_transitions() -> None:
    assert states.is_allowed('pending', 'approved')
    assert states.is_allowed('pending', 'rejected')
    assert states.is_allowed('pending', 'cancelled')
    assert states.is_allowed('approved', 'cancelled')

    assert not states.is_allowed('pending', 'pending')
    assert not states.is_allowed('approved', 'rejected')
    assert not states.is_allowed('approved', 'pending')
    assert not states.is_allowed('unknown', 'approved')


def test_terminal_states() -> None:
    assert states.TERMINAL == {'rejected', 'cancelled'}

    for status in states.TERMINAL:
        for target in states.TRANSITIONS:
            assert not states.is_allowed(status, target)


def test_invalid_transition_reports_both_states() -> None:
    with pytest.raises(errors.InvalidTransition) as e:
        states.assert_transition('rejected', 'approved')

    assert e.value.current == 'rejected'
    assert e.value.requested == 'approved'
    assert str(e.value) == (
        'Invalid booking transition: rejected -> approved'
    )


def test_ledger_effects() -> None:
    assert states.ledger_effect('pending', 'approved') == 'consumed'
    assert states.ledger_effect('approved', 'cancelled') == 'refunded'
    assert states.ledger_effect('pending', 'rejected') is None
    assert states.ledger_effect('pending', 'cancelled') is None


def test_admins_may_do_anything() -> None:
    booking = new_booking('startup', 'pending')

    for role in ('facility_admin', 'resource_admin'):
        admin = new_user('admin', role)

        for target in ('approved', 'rejected', 'cancelled'):
            states.assert_permitted(booking, target, admin)


def test_owners_may_withdraw_pending_requests() -> None:
    owner = new_user('startup')
    stranger = new_user('stranger')

    pending = new_booking('startup', 'pending')
    states.assert_permitted(pending, 'cancelled', owner)

    with pytest.raises(errors.NotAuthorized):
        states.assert_permitted(pending, 'cancelled', stranger)

    with pytest.raises(errors.NotAuthorized):
        states.assert_permitted(pending, 'approved', owner)

    with pytest.raises(errors.NotAuthorized):
        states.assert_permitted(pending, 'rejected', owner)


def test_owners_cancelling_approved_bookings() -> None:
    owner = new_user('startup')
    approved = new_booking('startup', 'approved')

    with pytest.raises(errors.NotAuthorized):
        states.assert_permitted(approved, 'cancelled', owner)

    states.assert_permitted(
        approved, 'cancelled', owner, owner_may_cancel_approved=True
    )
