from __future__ import annotations

from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import object_session
from sqlalchemy.orm import Mapped

from slotledger.db.models.base import ORMBase
from slotledger.db.models.other import OtherModels
from slotledger.db.models.timestamp import TimestampMixin


from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sqlalchemy.orm import Query
    from typing_extensions import TypeAlias

    from slotledger.db.models import Booking

Role: TypeAlias = Literal['startup', 'facility_admin', 'resource_admin']
ADMIN_ROLES: frozenset[Role] = frozenset(('facility_admin', 'resource_admin'))


class User(TimestampMixin, ORMBase, OtherModels):
    """ A member of the facility.

    The user only carries the nominal token allocation. What was consumed
    and what remains is derived from the bookings by
    :class:`slotledger.db.ledger.Ledger`, there is no column
    caching either.

    """

    __tablename__ = 'users'

    id: Mapped[str] = mapped_column(
        types.String(64),
        primary_key=True
    )

    name: Mapped[str | None]

    email: Mapped[str | None] = mapped_column(types.Unicode(254))

    role: Mapped[Role] = mapped_column(
        types.Enum(
            'startup', 'facility_admin', 'resource_admin',
            name='user_role'
        ),
        default='startup'
    )

    tokens_given: Mapped[int] = mapped_column(default=0)

    def __init__(self) -> None:
        # NOTE: Avoid auto-generated __init__, the mypy plugin is
        #       deprecated and cannot be used with newer versions.
        pass

    def __repr__(self) -> str:
        return f'<User {self.id} ({self.role})>'

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def bookings(self) -> Query[Booking]:
        """ All bookings of this user, oldest first. """
        session = object_session(self)
        assert session, "Don't call if the user is detached"

        Booking = self.models.Booking  # noqa: N806
        query = session.query(Booking)
        query = query.filter(Booking.user_id == self.id)
        query = query.order_by(Booking.start, Booking.id)

        return query
