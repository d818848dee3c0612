from __future__ import annotations

import slotledger
import time

from slotledger.context.session import SessionProvider
from slotledger.db.facility import Facility
from slotledger.db.models import User
from threading import Thread


class SessionIds(Thread):
    def __init__(self, dsn: str):
        Thread.__init__(self)
        self.session_id: int | None = None
        self.dsn = dsn

    def run(self) -> None:
        context = slotledger.registry.register_context(str(id(self)))
        context.set_setting('dsn', self.dsn)
        facility = Facility(context)
        self.session_id = id(facility.session)

        # make sure the thread runs long enough for test_sessionstore to
        # have both threads running at the same time, since the docs states:
        # "Two objects with non-overlapping lifetimes may have the same
        # id() value."
        time.sleep(0.1)

        facility.session_provider.stop_service()


def test_stop_unused_session(dsn: str) -> None:
    provider = SessionProvider(dsn)
    provider.stop_service()  # should not throw any exceptions


def test_serializable_sessions(dsn: str) -> None:
    provider = SessionProvider(dsn)
    session = provider.session()

    level = session.connection().get_isolation_level()
    assert level == 'SERIALIZABLE'

    session.rollback()
    provider.stop_service()


def test_savepoints(dsn: str) -> None:
    provider = SessionProvider(dsn)
    session = provider.session()

    user = User()
    user.id = 'savepoint'
    user.role = 'startup'
    user.tokens_given = 0

    session.add(user)
    session.flush()

    nested = session.begin_nested()
    user.tokens_given = 10
    session.flush()
    nested.rollback()

    assert user.tokens_given == 0

    session.rollback()
    assert session.get(User, 'savepoint') is None

    provider.stop_service()


def test_sessionstore(dsn: str) -> None:
    t1 = SessionIds(dsn)
    t2 = SessionIds(dsn)

    t1.start()
    t2.start()

    t1.join()
    t2.join()

    assert t1.session_id is not None
    assert t2.session_id is not None
    assert t1.session_id != t2.session_id
