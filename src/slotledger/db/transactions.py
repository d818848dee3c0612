from __future__ import annotations

from sqlalchemy import func

from slotledger.context.core import ContextServicesMixin
from slotledger.db.ledger import Ledger
from slotledger.db.models import TokenTransaction
from slotledger.modules import errors


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sqlalchemy.orm import Query

    from slotledger.context.core import Context
    from slotledger.db.models import Booking, User
    from slotledger.db.models.transaction import TransactionType


# the sign each transaction type's amount must have, 0 for either
SIGNS: dict[TransactionType, int] = {
    'allocated': 1,
    'refunded': 1,
    'consumed': -1,
    'expired': -1,
    'adjusted': 0,
}


def assert_valid_amount(transaction_type: str, amount: int) -> None:
    if transaction_type not in SIGNS:
        raise errors.InvalidAmount(
            f'Unknown transaction type: {transaction_type}')

    if not amount:
        raise errors.InvalidAmount('Please enter a valid amount')

    sign = SIGNS[transaction_type]  # type: ignore[index]

    if sign and (amount > 0) != (sign > 0):
        raise errors.InvalidAmount(
            f'{transaction_type} transactions must be '
            f'{"positive" if sign > 0 else "negative"}, got {amount}'
        )


class TransactionLog(ContextServicesMixin):
    """ The append-only audit trail of a user's tokens.

    Each transaction stores the balance before and after it was applied.
    The balance before is read from the :class:`~.ledger.Ledger` at the time
    of recording, so :meth:`record` has to be called *before* the change it
    describes is made (before the booking status or the user's allocation
    changes).

    """

    def __init__(self, context: Context, ledger: Ledger | None = None):
        self.context = context
        self.ledger = ledger or Ledger(context)

    def record(
        self,
        user: User,
        transaction_type: TransactionType,
        amount: int,
        description: str = '',
        booking: Booking | None = None,
        created_by: str | None = None
    ) -> TokenTransaction:

        assert_valid_amount(transaction_type, amount)

        balance_before = self.ledger.remaining(user)

        transaction = TokenTransaction()
        transaction.user_id = user.id
        transaction.transaction_type = transaction_type
        transaction.amount = amount
        transaction.balance_before = balance_before
        transaction.balance_after = balance_before + amount
        transaction.description = description
        transaction.booking_id = booking.id if booking is not None else None
        transaction.created_by = created_by

        self.session.add(transaction)

        return transaction

    def history(
        self,
        user_id: str,
        transaction_type: TransactionType | None = None
    ) -> Query[TokenTransaction]:
        """ The transactions of the user, newest first. The query may be
        iterated any number of times, each time reading the current state.

        """
        query = self.session.query(TokenTransaction)
        query = query.filter(TokenTransaction.user_id == user_id)

        if transaction_type is not None:
            query = query.filter(
                TokenTransaction.transaction_type == transaction_type
            )

        query = query.order_by(
            TokenTransaction.created.desc(),
            TokenTransaction.id.desc()
        )

        return query

    def totals(self, user_id: str) -> dict[TransactionType, int]:
        """ The summed amounts of the user's transactions by type. Types the
        user has no transactions of are reported as 0.

        """
        query = self.session.query(
            TokenTransaction.transaction_type,
            func.sum(TokenTransaction.amount)
        )
        query = query.filter(TokenTransaction.user_id == user_id)
        query = query.group_by(TokenTransaction.transaction_type)

        totals = dict.fromkeys(SIGNS, 0)
        totals.update((kind, int(amount)) for kind, amount in query)

        return totals

    def by_booking(self, booking_id: int) -> Query[TokenTransaction]:
        query = self.session.query(TokenTransaction)
        query = query.filter(TokenTransaction.booking_id == booking_id)
        query = query.order_by(TokenTransaction.id)

        return query
