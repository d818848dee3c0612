from __future__ import annotations

import pytest
from _pytest.fixtures import FixtureLookupError

from slotledger import new_facility, registry
# FIXME: Switch to pytest-postgresql, testing.postgresql is unmaintained
from testing.postgresql import Postgresql  # type: ignore[import-untyped]
from uuid import uuid4 as new_uuid


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Generator
    from slotledger.db.facility import Facility


def new_test_facility(
    dsn: str,
    context_name: str | None = None
) -> Facility:

    context_name = context_name or new_uuid().hex

    context = registry.register_context(context_name, replace=True)
    context.set_setting('dsn', dsn)

    return new_facility(context=context, timezone='Europe/Zurich')


@pytest.fixture
def facility(
    request: pytest.FixtureRequest,
    dsn: str
) -> Generator[Facility, None, None]:

    # clear the events before each test
    from slotledger.modules import events
    for event in (e for e in dir(events) if e.startswith('on_')):
        del getattr(events, event)[:]

    try:
        context = request.getfixturevalue('facility_context')
    except FixtureLookupError:
        context = None

    facility = new_test_facility(dsn, context)

    yield facility

    facility.rollback()
    facility.extinguish_managed_records()
    facility.commit()
    facility.close()
    facility.session_provider.stop_service()


@pytest.fixture
def fablab(facility: Facility) -> Facility:
    """ A facility with an administrator, a startup holding 40 tokens and
    a few machines.

    """

    facility.user_directory.add_user('admin', role='facility_admin')
    facility.user_directory.add_user('keeper', role='resource_admin')
    facility.user_directory.add_user('startup', tokens_given=40)
    facility.user_directory.add_user('other-startup', tokens_given=10)

    catalog = facility.machine_catalog
    catalog.add_machine('C03M01', 'Laser Cutter #1', 'C03', 'available', 6)
    catalog.add_machine('C02M01', 'CNC Machine #1', 'C02', 'maintenance', 8)
    catalog.add_machine('C01M01', '3D Printer #1', 'C01', 'available')
    catalog.add_machine('C01M02', '3D Printer #2', 'C01', 'offline', 5)

    facility.commit()

    return facility


@pytest.fixture
def other_facility(
    fablab: Facility,
    dsn: str
) -> Generator[Facility, None, None]:
    """ A second facility on the same database, with its own context and
    connections, as if it ran in another process. Records are cleaned up
    by the facility it shares the database with.

    """

    facility = new_test_facility(dsn)

    yield facility

    facility.rollback()
    facility.close()
    facility.session_provider.stop_service()


@pytest.fixture(scope="session")
def dsn() -> Generator[str, None, None]:
    postgres = Postgresql()

    facility = new_test_facility(postgres.url())
    facility.setup_database()
    facility.commit()

    yield postgres.url()

    facility.close()
    facility.session_provider.stop_service()

    postgres.stop()
