from __future__ import annotations

import pytest

from datetime import datetime
from fleetres.db.ledger import lock_key
from fleetres.db.models import Assignment, Vehicle
from fleetres.modules import errors
from fleetres.modules.interval import Interval
from sedate import standardize_date
from uuid import uuid4


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from fleetres.db.scheduler import Scheduler


def at(day: int, hour: int = 0) -> datetime:
    return standardize_date(datetime(2024, 5, day, hour), 'Europe/Zurich')


def new_assignment(
    vehicle: Vehicle,
    start: datetime,
    end: datetime | None = None,
    requester_id: str = 'jane'
) -> Assignment:
    return Assignment(
        vehicle_id=vehicle.id,
        requester_id=requester_id,
        start=start,
        end=end
    )


def insert(
    scheduler: Scheduler,
    vehicle: Vehicle,
    start: datetime,
    end: datetime | None = None
) -> Assignment:
    interval = Interval.create(start, end)
    proposal = scheduler.ledger.propose(vehicle.id, interval)

    return scheduler.ledger.insert(
        new_assignment(vehicle, start, end), proposal
    )


def test_lock_key_fits_bigint() -> None:
    for _ in range(100):
        key = lock_key(uuid4())
        assert -(1 << 63) <= key < (1 << 63)

    vehicle_id = uuid4()
    assert lock_key(vehicle_id) == lock_key(vehicle_id)


def test_propose(scheduler: Scheduler, vehicle: Vehicle) -> None:
    ledger = scheduler.ledger

    proposal = ledger.propose(vehicle.id, Interval(at(1), at(2)))
    assert proposal.accepted
    assert proposal.conflicting is None
    assert proposal.conflicting_id is None

    existing = insert(scheduler, vehicle, at(1), at(3))

    proposal = ledger.propose(vehicle.id, Interval(at(2), at(4)))
    assert not proposal.accepted
    assert proposal.conflicting is existing
    assert proposal.conflicting_id == existing.id

    assert ledger.propose(vehicle.id, Interval(at(3), at(4))).accepted
    assert ledger.propose(
        vehicle.id, Interval(at(2), at(4)), exclude_id=existing.id
    ).accepted

    # other vehicles are not affected
    assert ledger.propose(uuid4(), Interval(at(2), at(4))).accepted


def test_propose_ignores_cancelled(
    scheduler: Scheduler,
    vehicle: Vehicle
) -> None:

    existing = insert(scheduler, vehicle, at(1))
    assert not scheduler.ledger.propose(vehicle.id, Interval(at(5))).accepted

    scheduler.ledger.cancel(existing.id)
    assert scheduler.ledger.propose(vehicle.id, Interval(at(5))).accepted


def test_insert_requires_accepted_proposal(
    scheduler: Scheduler,
    vehicle: Vehicle
) -> None:

    ledger = scheduler.ledger
    assignment = new_assignment(vehicle, at(1), at(2))

    with pytest.raises(errors.InvariantViolation):
        ledger.insert(assignment, None)

    insert(scheduler, vehicle, at(1), at(3))

    rejected = ledger.propose(vehicle.id, Interval(at(1), at(2)))
    with pytest.raises(errors.InvariantViolation):
        ledger.insert(assignment, rejected)


def test_insert_requires_matching_proposal(
    scheduler: Scheduler,
    vehicle: Vehicle
) -> None:

    proposal = scheduler.ledger.propose(vehicle.id, Interval(at(5), at(6)))
    assert proposal.accepted

    with pytest.raises(errors.InvariantViolation):
        scheduler.ledger.insert(
            new_assignment(vehicle, at(1), at(10)), proposal
        )


def test_insert_rechecks_stale_proposal(
    scheduler: Scheduler,
    vehicle: Vehicle
) -> None:

    interval = Interval(at(1), at(5))
    stale = scheduler.ledger.propose(vehicle.id, interval)

    insert(scheduler, vehicle, at(2), at(3))

    with pytest.raises(errors.InvariantViolation):
        scheduler.ledger.insert(
            new_assignment(vehicle, at(1), at(5)), stale
        )

    assert scheduler.session.query(Assignment).count() == 1


def test_close(scheduler: Scheduler, vehicle: Vehicle) -> None:
    ledger = scheduler.ledger
    assignment = insert(scheduler, vehicle, at(1))

    with pytest.raises(errors.InvalidInterval):
        ledger.close(assignment.id, at(1))

    ledger.close(assignment.id, at(4))
    assert assignment.end == at(4)
    assert not assignment.is_open

    with pytest.raises(errors.AssignmentAlreadyClosed) as e:
        ledger.close(assignment.id, at(5))

    assert e.value.code == 'already_closed'

    with pytest.raises(errors.UnknownAssignment):
        ledger.close(uuid4(), at(5))


def test_close_detects_new_overlap(
    scheduler: Scheduler,
    vehicle: Vehicle
) -> None:

    # a bounded assignment before the open one is fine
    before = insert(scheduler, vehicle, at(1, 8), at(1, 12))
    assignment = insert(scheduler, vehicle, at(2))

    assert not before.is_open

    # an assignment that would have overlapped is written behind the
    # ledger's back, the close must not go through
    scheduler.session.add(new_assignment(vehicle, at(10), at(12)))
    scheduler.session.flush()

    with pytest.raises(errors.OverlappingAssignmentError) as e:
        scheduler.ledger.close(assignment.id, at(11))

    assert e.value.existing_interval == Interval(at(10), at(12))
    assert assignment.is_open

    scheduler.ledger.close(assignment.id, at(10))
    assert assignment.end == at(10)


def test_cancel_is_idempotent(
    scheduler: Scheduler,
    vehicle: Vehicle
) -> None:

    assignment = insert(scheduler, vehicle, at(1), at(2))

    assert scheduler.ledger.cancel(assignment.id) is True
    assert assignment.cancelled

    assert scheduler.ledger.cancel(assignment.id) is False
    assert assignment.cancelled

    with pytest.raises(errors.UnknownAssignment) as e:
        scheduler.ledger.cancel(uuid4())

    assert e.value.code == 'not_found'


def test_lookups(scheduler: Scheduler, vehicle: Vehicle) -> None:
    assert scheduler.ledger.vehicle_by_id(vehicle.id) is vehicle

    with pytest.raises(errors.UnknownVehicle):
        scheduler.ledger.vehicle_by_id(uuid4())

    assignment = insert(scheduler, vehicle, at(1), at(2))
    assert scheduler.ledger.assignment_by_id(assignment.id) is assignment
