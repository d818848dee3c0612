from __future__ import annotations

from slotledger.context.core import ContextServicesMixin
from slotledger.db.models import Machine


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sqlalchemy.orm import Query

    from slotledger.context.core import Context
    from slotledger.db.models.machine import MachineStatus


class MachineCatalog(ContextServicesMixin):
    """ Read access to the machines of the facility.

    The booking core only reads machines. Replace the ``machine_catalog``
    service of your context to read them from somewhere else, the
    replacement only needs to provide :meth:`get_machine` and
    :meth:`list_available`.

    """

    def __init__(self, context: Context):
        self.context = context

    def get_machine(self, id: str) -> Machine | None:
        return self.session.get(Machine, id)

    def list_available(self) -> Query[Machine]:
        query = self.session.query(Machine)
        query = query.filter(Machine.status == 'available')
        query = query.order_by(Machine.id)

        return query

    def add_machine(
        self,
        id: str,
        name: str | None = None,
        machine_type_id: str | None = None,
        status: MachineStatus = 'available',
        custom_token_cost: int | None = None
    ) -> Machine:

        machine = Machine()
        machine.id = id
        machine.name = name or id
        machine.machine_type_id = machine_type_id
        machine.status = status
        machine.custom_token_cost = custom_token_cost

        self.session.add(machine)
        self.session.flush()

        return machine

    def set_status(self, id: str, status: MachineStatus) -> Machine:
        machine = self.get_machine(id)
        assert machine is not None, f'Unknown machine {id}'

        machine.status = status
        return machine
