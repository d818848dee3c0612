from __future__ import annotations

from slotledger.context.core import ContextServicesMixin
from slotledger.db.models import User


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from slotledger.context.core import Context
    from slotledger.db.models.user import Role


class UserDirectory(ContextServicesMixin):
    """ Looks up the users owning bookings and tokens.

    Authentication happens elsewhere, the directory only knows about the
    role and the nominal token allocation of a user.

    """

    def __init__(self, context: Context):
        self.context = context

    def get_user(self, id: str) -> User | None:
        return self.session.get(User, id)

    def lock_user(self, id: str) -> User | None:
        """ Returns the user with its row locked until the end of the
        current transaction.

        """
        self.session.flush()

        return self.session.get(
            User, id,
            with_for_update=True,
            populate_existing=True
        )

    def add_user(
        self,
        id: str,
        role: Role = 'startup',
        tokens_given: int = 0,
        name: str | None = None,
        email: str | None = None
    ) -> User:

        user = User()
        user.id = id
        user.role = role
        user.tokens_given = tokens_given
        user.name = name or id
        user.email = email

        self.session.add(user)
        self.session.flush()

        return user
