from __future__ import annotations

import logging

from contextlib import contextmanager
from sqlalchemy import exc

from slotledger.context.core import ContextServicesMixin
from slotledger.db import states
from slotledger.db import validator
from slotledger.db.ledger import Ledger
from slotledger.db.models import ORMBase, Booking, Machine, TokenTransaction
from slotledger.db.models import User
from slotledger.db.transactions import TransactionLog
from slotledger.modules import errors
from slotledger.modules import events


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import datetime
    from sqlalchemy.orm import Query
    from typing_extensions import Self

    from slotledger.context.core import Context
    from slotledger.db.ledger import Balance
    from slotledger.db.models.booking import BookingStatus
    from slotledger.db.models.transaction import TransactionType


log = logging.getLogger('slotledger')


class Facility(ContextServicesMixin):
    """ The Facility is responsible for admitting bookings, moving them
    through their lifecycle and keeping the token ledger of the users in
    line with them. It is the main part of the API.

    The facility never commits, that is up to the caller (see
    :mod:`slotledger.api` for a boundary doing that). Every operation
    touching a balance runs as one unit inside a savepoint though, so a
    failing operation leaves nothing behind.

    """

    def __init__(
        self,
        context: Context,
        timezone: str | None = None
    ):
        """ Initializes a new Facility instance.

        :context:
            The :class:`slotledger.context.core.Context` this facility should
            operate on. Acquire a context by using
            :func:`slotledger.context.registry.Registry.register_context`.

        :timezone:
            Dates passed to the facility that are not timezone-aware are
            assumed to be of this timezone. Defaults to the timezone setting
            of the context.

        """

        self.context = context
        self.timezone = timezone or context.get_setting('timezone')

        self.ledger = Ledger(context)
        self.transactions = TransactionLog(context, self.ledger)

    def clone(self) -> Self:
        """ Clones the facility. The result will be a new facility using the
        same context and timezone.

        """
        return self.__class__(self.context, self.timezone)

    @property
    def max_booking_hours(self) -> float:
        return self.context.get_setting('max_booking_hours')  # type: ignore[no-any-return]

    @property
    def default_token_cost(self) -> int:
        return self.context.get_setting('default_token_cost')  # type: ignore[no-any-return]

    @property
    def owner_may_cancel_approved(self) -> bool:
        return bool(self.context.get_setting('owner_may_cancel_approved'))

    def setup_database(self) -> None:
        """ Creates the tables and indices required. This needs to be called
        once per database. Multiple invocations won't hurt but they are
        unnecessary.

        """
        ORMBase.metadata.create_all(self.session.bind)

    def extinguish_managed_records(self) -> None:
        """ WARNING:
        Completely removes all users, machines, bookings and transactions.
        The transactions are removed in bulk, bypassing the append-only
        guard of the model. Meant for testing.

        """
        self.session.query(TokenTransaction).delete('fetch')
        self.session.query(Booking).delete('fetch')
        self.session.query(User).delete('fetch')
        self.session.query(Machine).delete('fetch')

    def user_by_id(self, user_id: str) -> User:
        user = self.user_directory.get_user(user_id)

        if user is None:
            raise errors.UnknownUser(user_id)

        return user

    def booking_by_id(self, booking_id: int) -> Booking:
        booking = self.session.get(Booking, booking_id)

        if booking is None:
            raise errors.UnknownBooking(booking_id)

        return booking

    def bookings_by_user(
        self,
        user_id: str,
        status: BookingStatus | None = None
    ) -> Query[Booking]:

        query = self.session.query(Booking)
        query = query.filter(Booking.user_id == user_id)

        if status is not None:
            query = query.filter(Booking.status == status)

        return query.order_by(Booking.start, Booking.id)

    def bookings_by_machine(
        self,
        machine_id: str,
        status: BookingStatus | None = None
    ) -> Query[Booking]:

        query = self.session.query(Booking)
        query = query.filter(Booking.machine_id == machine_id)

        if status is not None:
            query = query.filter(Booking.status == status)

        return query.order_by(Booking.start, Booking.id)

    def pending_bookings(self) -> Query[Booking]:
        """ The bookings waiting for an administrator, oldest first. """
        query = self.session.query(Booking)
        query = query.filter(Booking.status == 'pending')

        return query.order_by(Booking.id)

    def validate_booking(
        self,
        user_id: str,
        machine_id: str | None,
        start: datetime | None,
        end: datetime | None,
        booking_type: str = 'weekly_planning',
        justification: str | None = None
    ) -> validator.BookingDraft:
        """ Checks a booking request without writing anything. Returns the
        draft :meth:`submit_booking` would add.

        """

        user = self.user_by_id(user_id)

        if machine_id:
            machine = self.machine_catalog.get_machine(machine_id)
        else:
            machine = None

        request = validator.BookingRequest(
            user_id=user_id,
            machine_id=machine_id,
            start=start,
            end=end,
            booking_type=booking_type,
            justification=justification
        )

        return validator.validate(
            request,
            user,
            machine,
            self.bookings_by_user(user_id),
            max_hours=self.max_booking_hours,
            default_cost=self.default_token_cost,
            timezone=self.timezone
        )

    def submit_booking(
        self,
        user_id: str,
        machine_id: str | None,
        start: datetime | None,
        end: datetime | None,
        booking_type: str = 'weekly_planning',
        justification: str | None = None
    ) -> Booking:
        """ Requests a machine for the given time. The booking is added as
        ``pending``, its tokens are computed now but only charged once an
        administrator approves it.

        :user_id:
            The user requesting the machine.

        :machine_id:
            The machine to book. It has to be available.

        :start, end:
            The time span to book. At most ``max_booking_hours`` long, naive
            dates are taken to be in the facility's timezone.

        :booking_type:
            One of ``weekly_planning``, ``same_week_exceptional`` or
            ``monthly_provisional``. Exceptional bookings need a
            ``justification``.

        Raises a :class:`~slotledger.modules.errors.ValidationError` if the
        request is not admissible.

        """

        draft = self.validate_booking(
            user_id, machine_id, start, end, booking_type, justification
        )

        booking = Booking()
        booking.user_id = draft.user_id
        booking.machine_id = draft.machine_id
        booking.start = draft.start
        booking.end = draft.end
        booking.booking_type = draft.booking_type
        booking.justification = draft.justification
        booking.tokens_consumed = draft.tokens_consumed
        booking.status = 'pending'

        self.session.add(booking)
        self.session.flush()

        log.info(
            'Booking %s submitted by %s for %s (%s tokens)',
            booking.id, user_id, machine_id, booking.tokens_consumed
        )

        events.on_booking_submitted(self.context, booking)

        return booking

    @contextmanager
    def balance_unit(self, user_id: str) -> Iterator[User]:
        """ Runs the block as one atomic unit against the balance of the
        given user and yields the user.

        The user is locked for the duration (in-process and, on PostgreSQL,
        its row) and the block runs inside a savepoint. Any error rolls the
        savepoint back. Database errors are raised as
        :class:`~slotledger.modules.errors.PersistenceInconsistency`, they
        are not retried.

        """

        with self.user_locks(user_id):
            try:
                with self.begin_nested():
                    user = self.user_directory.lock_user(user_id)

                    if user is None:
                        raise errors.UnknownUser(user_id)

                    yield user

                    self.session.flush()

            except exc.SQLAlchemyError as e:
                log.error(
                    'Ledger write for %s failed, nothing was committed: %s',
                    user_id, e
                )
                raise errors.PersistenceInconsistency(
                    f'Could not update the tokens of {user_id}'
                ) from e

    def assert_consistent(
        self,
        user: User,
        transaction: TokenTransaction
    ) -> None:
        """ Compares the balance derived from the bookings with the balance
        the transaction recorded. They differ if some other writer changed
        the user's bookings or allocation in the meantime.

        """

        self.session.flush()
        remaining = self.ledger.remaining(user)

        if remaining != transaction.balance_after or remaining < 0:
            log.error(
                'Token ledger of %s is inconsistent: recorded %s, derived %s '
                '(%s transaction, booking %s). Reconcile manually.',
                user.id, transaction.balance_after, remaining,
                transaction.transaction_type, transaction.booking_id
            )
            raise errors.PersistenceInconsistency(
                f'Token balance of {user.id} is inconsistent'
            )

    def transition_booking(
        self,
        booking_id: int,
        target_status: BookingStatus,
        acting_user_id: str
    ) -> Booking:
        """ Moves the booking to the target status on behalf of the acting
        user, writing the token transaction the transition calls for.

        - approving charges the booking's tokens, after checking the
          user's balance once more
        - cancelling an approved booking refunds its tokens
        - rejecting or cancelling a pending booking leaves the tokens alone

        Raises :class:`~slotledger.modules.errors.InvalidTransition` for
        transitions the lifecycle doesn't allow,
        :class:`~slotledger.modules.errors.NotAuthorized` if the acting user
        may not make it and
        :class:`~slotledger.modules.errors.InsufficientTokens` if the user
        cannot afford an approval anymore.

        """

        booking = self.booking_by_id(booking_id)
        acting_user = self.user_by_id(acting_user_id)

        try:
            states.assert_transition(booking.status, target_status)
            states.assert_permitted(
                booking, target_status, acting_user,
                self.owner_may_cancel_approved
            )

            transaction = self._apply_transition(
                booking, target_status, acting_user
            )

        except errors.SlotLedgerError as e:
            e.booking = booking
            raise e

        if target_status == 'approved':
            assert transaction is not None
            events.on_booking_approved(self.context, booking, transaction)
        elif target_status == 'rejected':
            events.on_booking_rejected(self.context, booking)
        else:
            events.on_booking_cancelled(self.context, booking, transaction)

        return booking

    def _apply_transition(
        self,
        booking: Booking,
        target_status: BookingStatus,
        acting_user: User
    ) -> TokenTransaction | None:

        with self.balance_unit(booking.user_id) as user:

            # another session may have moved the booking in the meantime
            self.session.refresh(booking, with_for_update=True)
            current = booking.status

            states.assert_transition(current, target_status)
            states.assert_permitted(
                booking, target_status, acting_user,
                self.owner_may_cancel_approved
            )

            effect = states.ledger_effect(current, target_status)

            transaction = None

            if effect == 'consumed':
                available = self.ledger.remaining(user)

                if booking.tokens_consumed > available:
                    log.warning(
                        'Approval of booking %s refused, %s needs %s tokens '
                        'but has %s left',
                        booking.id, user.id, booking.tokens_consumed,
                        available
                    )
                    raise errors.InsufficientTokens(
                        booking.tokens_consumed, available
                    )

                transaction = self.transactions.record(
                    user, 'consumed', -booking.tokens_consumed,
                    description=f'Booking {booking.id} on '
                                f'{booking.machine_id} approved',
                    booking=booking,
                    created_by=acting_user.id
                )

            elif effect == 'refunded':
                transaction = self.transactions.record(
                    user, 'refunded', booking.tokens_consumed,
                    description=f'Booking {booking.id} on '
                                f'{booking.machine_id} cancelled',
                    booking=booking,
                    created_by=acting_user.id
                )

            booking.status = target_status

            if acting_user.is_admin:
                booking.reviewed_by = acting_user.id

            if transaction is not None:
                self.assert_consistent(user, transaction)

        log.info(
            'Booking %s moved from %s to %s by %s',
            booking.id, current, target_status, acting_user.id
        )

        return transaction

    def approve_booking(self, booking_id: int, acting_user_id: str) -> Booking:
        return self.transition_booking(booking_id, 'approved', acting_user_id)

    def reject_booking(self, booking_id: int, acting_user_id: str) -> Booking:
        return self.transition_booking(booking_id, 'rejected', acting_user_id)

    def cancel_booking(self, booking_id: int, acting_user_id: str) -> Booking:
        return self.transition_booking(
            booking_id, 'cancelled', acting_user_id
        )

    def get_balance(self, user_id: str) -> Balance:
        """ Returns the tokens given to, consumed by and remaining for the
        user. Always derived from the approved bookings.

        """
        return self.ledger.balance(self.user_by_id(user_id))

    def get_transaction_history(
        self,
        user_id: str,
        transaction_type: TransactionType | None = None
    ) -> Query[TokenTransaction]:
        """ Returns the token transactions of the user, newest first,
        optionally only the ones of the given type.

        """
        self.user_by_id(user_id)
        return self.transactions.history(user_id, transaction_type)

    def get_transaction_totals(
        self,
        user_id: str
    ) -> dict[TransactionType, int]:
        """ Returns the summed amounts of the user's transactions by type. """
        self.user_by_id(user_id)
        return self.transactions.totals(user_id)

    def _assert_admin(self, acting_user_id: str, action: str) -> User:
        acting_user = self.user_by_id(acting_user_id)

        if not acting_user.is_admin:
            raise errors.NotAuthorized(acting_user_id, action)

        return acting_user

    def _change_allocation(
        self,
        user_id: str,
        transaction_type: str,
        amount: int,
        description: str,
        acting_user: User
    ) -> TokenTransaction:

        with self.balance_unit(user_id) as user:
            available = self.ledger.remaining(user)

            if available + amount < 0:
                raise errors.InsufficientTokens(-amount, available)

            transaction = self.transactions.record(
                user, transaction_type, amount,  # type: ignore[arg-type]
                description=description,
                created_by=acting_user.id
            )
            user.tokens_given += amount

            self.assert_consistent(user, transaction)

        log.info(
            '%s %s tokens %s by %s (balance %s -> %s)',
            user_id, transaction_type, amount, acting_user.id,
            transaction.balance_before, transaction.balance_after
        )

        events.on_tokens_changed(self.context, transaction)

        return transaction

    def allocate_tokens(
        self,
        user_id: str,
        amount: int,
        description: str,
        acting_user_id: str
    ) -> TokenTransaction:
        """ Gives the user more tokens. Only administrators may do this and
        the amount has to be positive.

        """

        acting_user = self._assert_admin(acting_user_id, 'allocate tokens')

        if amount <= 0:
            raise errors.InvalidAmount('Please enter a valid amount')

        return self._change_allocation(
            user_id, 'allocated', amount, description, acting_user
        )

    def adjust_tokens(
        self,
        user_id: str,
        amount: int,
        description: str,
        acting_user_id: str
    ) -> TokenTransaction:
        """ Corrects the tokens of the user by a positive or negative amount.
        A deduction may not take more than the user has left.

        """

        acting_user = self._assert_admin(acting_user_id, 'adjust tokens')

        if not amount:
            raise errors.InvalidAmount('Please enter a valid amount')

        return self._change_allocation(
            user_id, 'adjusted', amount, description, acting_user
        )

    def expire_tokens(
        self,
        user_id: str,
        description: str,
        acting_user_id: str,
        amount: int | None = None
    ) -> TokenTransaction | None:
        """ Takes unused tokens away from the user, all of them if no amount
        is given. Returns None if there was nothing left to expire.

        """

        acting_user = self._assert_admin(acting_user_id, 'expire tokens')

        if amount is None:
            amount = self.get_balance(user_id).remaining

            if amount <= 0:
                return None

        if amount <= 0:
            raise errors.InvalidAmount('Please enter a valid amount')

        return self._change_allocation(
            user_id, 'expired', -amount, description, acting_user
        )
