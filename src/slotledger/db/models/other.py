from __future__ import annotations


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing import Protocol

    import slotledger.db.models as _models

    class _Models(Protocol):
        User: type[_models.User]
        Machine: type[_models.Machine]
        Booking: type[_models.Booking]
        TokenTransaction: type[_models.TokenTransaction]


models = None


class OtherModels:
    """ Mixin class which allows for all models to access the other model
    classes without causing circular imports. """

    @property
    def models(self) -> _Models:
        global models
        if not models:
            from slotledger.db import models as m_
            models = m_

        return models
