from __future__ import annotations

from sqlalchemy import event
from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import ForeignKey
from sqlalchemy.schema import Index

from slotledger.db.models.base import ORMBase
from slotledger.db.models.timestamp import TimestampMixin
from slotledger.modules import errors


from typing import Any
from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing_extensions import TypeAlias

TransactionType: TypeAlias = Literal[
    'allocated',
    'consumed',
    'refunded',
    'adjusted',
    'expired'
]


class TokenTransaction(TimestampMixin, ORMBase):
    """ An entry in the token ledger of a user.

    Transactions are append-only. Once written they may neither be updated
    nor deleted through the ORM.

    """

    __tablename__ = 'token_transactions'

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True
    )

    user_id: Mapped[str] = mapped_column(
        types.String(64),
        ForeignKey('users.id')
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        types.Enum(
            'allocated', 'consumed', 'refunded', 'adjusted', 'expired',
            name='token_transaction_type'
        )
    )

    amount: Mapped[int]

    balance_before: Mapped[int]

    balance_after: Mapped[int]

    description: Mapped[str] = mapped_column(types.Text(), default='')

    booking_id: Mapped[int | None] = mapped_column(
        ForeignKey('bookings.id')
    )

    created_by: Mapped[str | None] = mapped_column(types.String(64))

    __table_args__ = (
        Index('token_transaction_user_ix', 'user_id', 'id'),
    )

    def __init__(self) -> None:
        pass

    def __repr__(self) -> str:
        return (
            f'<TokenTransaction {self.transaction_type} {self.amount:+d} '
            f'for {self.user_id}>'
        )


@event.listens_for(TokenTransaction, 'before_update')
def prevent_update(mapper: Any, connection: Any, target: Any) -> None:
    raise errors.ImmutableRecord(target)


@event.listens_for(TokenTransaction, 'before_delete')
def prevent_delete(mapper: Any, connection: Any, target: Any) -> None:
    raise errors.ImmutableRecord(target)
