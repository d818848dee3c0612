""" Derives token balances from the bookings.

The balance of a user is never stored. It is always computed as the tokens
given to the user minus the tokens of the user's approved bookings. The
pure functions work on bookings already at hand, :class:`Ledger` asks the
database for the same sum.

"""
from __future__ import annotations

from sqlalchemy import func

from slotledger.context.core import ContextServicesMixin
from slotledger.db.models import Booking


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable

    from slotledger.context.core import Context
    from slotledger.db.models import User


class Balance(NamedTuple):
    given: int
    consumed: int
    remaining: int


def consumed_tokens(bookings: Iterable[Booking]) -> int:
    return sum(b.tokens_consumed for b in bookings if b.status == 'approved')


def remaining_tokens(tokens_given: int, bookings: Iterable[Booking]) -> int:
    return tokens_given - consumed_tokens(bookings)


class Ledger(ContextServicesMixin):

    def __init__(self, context: Context):
        self.context = context

    def consumed(self, user_id: str) -> int:
        query = self.session.query(
            func.coalesce(func.sum(Booking.tokens_consumed), 0)
        )
        query = query.filter(Booking.user_id == user_id)
        query = query.filter(Booking.status == 'approved')

        return int(query.scalar())

    def remaining(self, user: User) -> int:
        return user.tokens_given - self.consumed(user.id)

    def balance(self, user: User) -> Balance:
        consumed = self.consumed(user.id)
        return Balance(
            given=user.tokens_given,
            consumed=consumed,
            remaining=user.tokens_given - consumed
        )
