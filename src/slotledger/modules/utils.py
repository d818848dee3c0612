from __future__ import annotations

import math

from datetime import timedelta
from fractions import Fraction


HOUR = timedelta(hours=1)
MICROSECOND = timedelta(microseconds=1)


def tokens_required(duration: timedelta, token_cost: int) -> int:
    """ Tokens charged for a booking of the given length. Partial token
    costs are always rounded up, down to the microsecond.

    """
    # timedelta // timedelta is exact, unlike hours as a float
    hours = Fraction(duration // MICROSECOND, HOUR // MICROSECOND)
    return math.ceil(hours * token_cost)
