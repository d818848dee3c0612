from slotledger.db.models.base import ORMBase
from slotledger.db.models.user import User
from slotledger.db.models.machine import Machine
from slotledger.db.models.booking import Booking
from slotledger.db.models.transaction import TokenTransaction


__all__ = ['ORMBase', 'User', 'Machine', 'Booking', 'TokenTransaction']
