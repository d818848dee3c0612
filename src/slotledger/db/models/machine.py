from __future__ import annotations

from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import Mapped

from slotledger.db.models.base import ORMBase
from slotledger.db.models.timestamp import TimestampMixin


from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing_extensions import TypeAlias

MachineStatus: TypeAlias = Literal['available', 'maintenance', 'offline']


class Machine(TimestampMixin, ORMBase):
    """ A bookable piece of equipment, owned by the machine catalog. """

    __tablename__ = 'machines'

    id: Mapped[str] = mapped_column(
        types.String(64),
        primary_key=True
    )

    name: Mapped[str | None]

    machine_type_id: Mapped[str | None] = mapped_column(types.String(64))

    status: Mapped[MachineStatus] = mapped_column(
        types.Enum(
            'available', 'maintenance', 'offline',
            name='machine_status'
        ),
        default='available'
    )

    custom_token_cost: Mapped[int | None]

    def __init__(self) -> None:
        pass

    def __repr__(self) -> str:
        return f'<Machine {self.id} ({self.status})>'

    @property
    def is_available(self) -> bool:
        return self.status == 'available'

    def token_cost(self, default: int = 1) -> int:
        """ Tokens charged per hour of use. """
        if self.custom_token_cost:
            return self.custom_token_cost
        return default
