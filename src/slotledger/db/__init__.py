from __future__ import annotations

from slotledger.db.facility import Facility


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from slotledger.context.core import Context


def new_facility(
    context: Context | str,
    timezone: str | None = None,
    settings: dict[str, Any] | None = None
) -> Facility:
    """ Creates a facility operating on the given context. If a context name
    is passed, the context is created on the default registry if it doesn't
    exist yet.

    Settings are applied to the context before the facility is created::

        facility = new_facility('fablab', settings={
            'settings.dsn': 'postgresql+psycopg2://user@localhost/fablab'
        })

    """

    if isinstance(context, str):
        from slotledger import registry
        context = registry.get_context(context, autocreate=True)

    for name, value in (settings or {}).items():
        context.set(name, value)

    return Facility(context, timezone)


__all__ = ['Facility', 'new_facility']
