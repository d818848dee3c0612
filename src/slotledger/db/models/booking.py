from __future__ import annotations

import sedate

from datetime import datetime

from sqlalchemy import event
from sqlalchemy import inspect
from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import object_session
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import ForeignKey
from sqlalchemy.schema import Index

from slotledger.db.models.base import ORMBase
from slotledger.db.models.other import OtherModels
from slotledger.db.models.timestamp import TimestampMixin
from slotledger.modules import errors


from typing import Any
from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sedate.types import TzInfoOrName
    from sqlalchemy.orm import Query
    from typing_extensions import TypeAlias

    from slotledger.db.models import TokenTransaction

BookingType: TypeAlias = Literal[
    'weekly_planning',
    'same_week_exceptional',
    'monthly_provisional'
]
BookingStatus: TypeAlias = Literal[
    'pending',
    'approved',
    'rejected',
    'cancelled'
]

BOOKING_TYPES: tuple[BookingType, ...] = (
    'weekly_planning',
    'same_week_exceptional',
    'monthly_provisional'
)


class Booking(TimestampMixin, ORMBase, OtherModels):
    """Describes a request of a user to use a machine for a while.

    The tokens the booking costs are computed once, when the request is
    submitted, and never change afterwards. They are only charged to the
    user while the booking is approved.

    """

    __tablename__ = 'bookings'

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True
    )

    user_id: Mapped[str] = mapped_column(
        types.String(64),
        ForeignKey('users.id')
    )

    machine_id: Mapped[str] = mapped_column(
        types.String(64),
        ForeignKey('machines.id')
    )

    start: Mapped[datetime]

    end: Mapped[datetime]

    booking_type: Mapped[BookingType] = mapped_column(
        types.Enum(
            *BOOKING_TYPES,
            name='booking_type'
        )
    )

    status: Mapped[BookingStatus] = mapped_column(
        types.Enum(
            'pending', 'approved', 'rejected', 'cancelled',
            name='booking_status'
        ),
        default='pending'
    )

    justification: Mapped[str | None] = mapped_column(types.Text())

    tokens_consumed: Mapped[int] = mapped_column(active_history=True)

    reviewed_by: Mapped[str | None] = mapped_column(types.String(64))

    __table_args__ = (
        Index('booking_user_status_ix', 'user_id', 'status'),
        Index('booking_machine_ix', 'machine_id', 'start'),
    )

    def __init__(self) -> None:
        pass

    def __repr__(self) -> str:
        return f'<Booking {self.id} of {self.user_id} ({self.status})>'

    @property
    def title(self) -> str:
        return f'{self.machine_id} ({self.user_id})'

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600

    @property
    def is_pending(self) -> bool:
        return self.status == 'pending'

    @property
    def is_approved(self) -> bool:
        return self.status == 'approved'

    def display_start(self, timezone: TzInfoOrName = 'UTC') -> datetime:
        """Does nothing but to form a nice pair to display_end."""
        return sedate.to_timezone(self.start, timezone)

    def display_end(self, timezone: TzInfoOrName = 'UTC') -> datetime:
        return sedate.to_timezone(self.end, timezone)

    def transactions(self) -> Query[TokenTransaction]:
        """ The ledger entries this booking triggered, oldest first. """
        session = object_session(self)
        assert session, "Don't call if the booking is detached"

        TokenTransaction = self.models.TokenTransaction  # noqa: N806
        query = session.query(TokenTransaction)
        query = query.filter(TokenTransaction.booking_id == self.id)
        query = query.order_by(TokenTransaction.id)

        return query


@event.listens_for(Booking, 'before_update')
def prevent_token_change(mapper: Any, connection: Any, target: Booking) -> None:
    history = inspect(target).attrs.tokens_consumed.history

    if history.deleted and history.deleted[0] is not None:
        raise errors.ImmutableRecord(target, 'tokens_consumed')
