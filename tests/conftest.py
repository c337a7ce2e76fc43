from __future__ import annotations

import pytest
from _pytest.fixtures import FixtureLookupError

from fleetres import new_scheduler, registry
from fleetres.db.models import Assignment, Vehicle
# FIXME: Switch to pytest-postgresql, testing.postgresql is unmaintained
from testing.postgresql import Postgresql  # type: ignore[import-untyped]
from uuid import uuid4 as new_uuid


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Generator
    from fleetres.db.scheduler import Scheduler


def new_test_scheduler(
    dsn: str,
    context_name: str | None = None
) -> Scheduler:

    context_name = context_name or new_uuid().hex

    context = registry.register_context(
        context_name, replace=True, settings={'dsn': dsn}
    )

    return new_scheduler(context=context, timezone='Europe/Zurich')


def is_postgres(dsn: str) -> bool:
    return dsn.startswith('postgresql')


@pytest.fixture
def scheduler(
    request: pytest.FixtureRequest,
    dsn: str
) -> Generator[Scheduler, None, None]:

    # clear the events before each test
    from fleetres.modules import events
    for event in (e for e in dir(events) if e.startswith('on_')):
        del getattr(events, event)[:]

    try:
        context = request.getfixturevalue('scheduler_context')
    except FixtureLookupError:
        context = None

    scheduler = new_test_scheduler(dsn, context)

    yield scheduler

    scheduler.rollback()
    scheduler.session.query(Assignment).delete()
    scheduler.session.query(Vehicle).delete()
    scheduler.commit()
    scheduler.close()
    scheduler.session_provider.stop_service()


@pytest.fixture
def vehicle(scheduler: Scheduler) -> Vehicle:
    vehicle = Vehicle(plate='BE 123 456', description='Transporter')
    scheduler.session.add(vehicle)
    scheduler.commit()

    return vehicle


@pytest.fixture
def postgres_dsn(dsn: str) -> str:
    if not is_postgres(dsn):
        pytest.skip('requires PostgreSQL')

    return dsn


@pytest.fixture(scope="session")
def dsn(
    tmp_path_factory: pytest.TempPathFactory
) -> Generator[str, None, None]:

    try:
        postgres = Postgresql()
    except RuntimeError:
        # no PostgreSQL binaries installed
        postgres = None
        url = 'sqlite:///{}'.format(
            tmp_path_factory.mktemp('fleetres') / 'fleetres.db'
        )
    else:
        url = postgres.url()

    scheduler = new_test_scheduler(url)
    scheduler.setup_database()
    scheduler.commit()

    yield url

    scheduler.close()
    scheduler.session_provider.stop_service()

    if postgres is not None:
        postgres.stop()
