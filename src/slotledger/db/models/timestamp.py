from __future__ import annotations

import sedate

from slotledger.db.models.types import UTCDateTime
from sqlalchemy.ext.declarative import declared_attr
from datetime import datetime
from sqlalchemy.orm import deferred
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import Column


from typing import TYPE_CHECKING


class TimestampMixin:
    """ Mixin providing created/modified timestamps for all records.

    The modified column is deferred loaded as this is primarily for logging
    and future forensics. The created column is used to order the token
    history, so it is always loaded.

    """

    @staticmethod
    def timestamp() -> datetime:
        return sedate.utcnow()

    if TYPE_CHECKING:
        created: Column[datetime]
        modified: Column[datetime | None]

    else:
        @declared_attr
        def created(cls) -> Mapped[datetime]:
            return Column(
                UTCDateTime(timezone=False),
                default=cls.timestamp
            )

        @declared_attr
        def modified(cls) -> Mapped[datetime | None]:
            return deferred(
                Column(
                    UTCDateTime(timezone=False),
                    onupdate=cls.timestamp
                )
            )
