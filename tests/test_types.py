from __future__ import annotations

import pytest

from datetime import datetime
from fleetres.db.models import Assignment, Vehicle
from fleetres.db.models.types.uuid_type import SoftUUID
from fleetres.modules import errors
from sedate import replace_timezone, standardize_date
from uuid import uuid4


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from fleetres.db.scheduler import Scheduler


def test_string_equal_uuid() -> None:
    uuid = uuid4()

    assert uuid == SoftUUID(uuid.hex)
    assert uuid.hex == SoftUUID(uuid.hex)
    assert str(uuid) == SoftUUID(uuid.hex)


def test_hashable_uuid() -> None:
    uuid = uuid4()

    assert hash(SoftUUID(uuid.hex))
    assert {SoftUUID(uuid.hex)} == {uuid}


def test_utc_dates_roundtrip(scheduler: Scheduler, vehicle: Vehicle) -> None:
    vehicle_id = vehicle.id
    start = standardize_date(datetime(2024, 7, 1, 8), 'Europe/Zurich')

    scheduler.session.add(Assignment(
        vehicle_id=vehicle.id,
        requester_id='jane',
        start=start,
        data={'purpose': 'delivery'}
    ))
    scheduler.commit()
    scheduler.close()

    assignment = scheduler.session.query(Assignment).one()

    assert assignment.start == start
    assert assignment.start.tzinfo is not None
    assert assignment.start.utcoffset().total_seconds() == 0
    assert assignment.end is None
    assert assignment.data == {'purpose': 'delivery'}
    assert isinstance(assignment.id, SoftUUID)
    assert assignment.vehicle_id == vehicle_id


def test_json_none_is_empty_dict(
    scheduler: Scheduler,
    vehicle: Vehicle
) -> None:

    scheduler.session.add(Assignment(
        vehicle_id=vehicle.id,
        requester_id='jane',
        start=replace_timezone(datetime(2024, 7, 1, 8), 'UTC')
    ))
    scheduler.commit()

    assert scheduler.session.query(Assignment).one().data == {}


def test_naive_dates_are_refused(
    scheduler: Scheduler,
    vehicle: Vehicle
) -> None:

    scheduler.session.add(Assignment(
        vehicle_id=vehicle.id,
        requester_id='jane',
        start=datetime(2024, 7, 1, 8)
    ))

    with pytest.raises(Exception) as e:
        scheduler.session.flush()

    # SQLAlchemy wraps errors raised while binding parameters
    assert isinstance(e.value, errors.NotTimezoneAware) or isinstance(
        getattr(e.value, 'orig', e.value.__cause__), errors.NotTimezoneAware
    )
