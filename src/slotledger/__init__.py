from __future__ import annotations

from slotledger.context.registry import create_default_registry
from slotledger.db import new_facility

registry = create_default_registry()

__version__ = '0.1.0'
__all__ = (
    'new_facility',
    'registry'
)
