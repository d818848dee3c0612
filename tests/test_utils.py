from datetime import timedelta
from slotledger.modules.utils import tokens_required


def test_tokens_required():
    assert tokens_required(timedelta(hours=5), 6) == 30
    assert tokens_required(timedelta(hours=2), 6) == 12
    assert tokens_required(timedelta(minutes=30), 1) == 1
    assert tokens_required(timedelta(minutes=15), 5) == 2
    assert tokens_required(timedelta(hours=2, minutes=30), 2) == 5
    assert tokens_required(timedelta(minutes=20), 3) == 1


def test_tokens_required_rounds_up_any_overrun():
    # a second too long costs a whole token
    assert tokens_required(timedelta(hours=1, seconds=1), 1) == 2

    # so does a microsecond
    assert tokens_required(timedelta(hours=1, microseconds=1), 1) == 2
    assert tokens_required(timedelta(hours=8, microseconds=1), 6) == 49

    assert tokens_required(timedelta(hours=1), 1) == 1
    assert tokens_required(timedelta(hours=8), 6) == 48
