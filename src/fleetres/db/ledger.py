from __future__ import annotations

import logging

from sqlalchemy import text

from fleetres.context.core import ContextServicesMixin
from fleetres.db.models import Assignment, Vehicle
from fleetres.db.queries import Queries
from fleetres.modules import errors
from fleetres.modules import overlap


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from fleetres.context.core import Context
    from fleetres.modules.interval import Interval


log = logging.getLogger('fleetres')


class Proposal(NamedTuple):
    """ The ledger's decision about an interval. A proposal is only a
    snapshot, the ledger checks again before anything is written.

    """

    vehicle_id: UUID
    interval: Interval
    exclude_id: UUID | None
    conflicting: Assignment | None

    @property
    def accepted(self) -> bool:
        return self.conflicting is None

    @property
    def conflicting_id(self) -> UUID | None:
        return self.conflicting.id if self.conflicting is not None else None

    def covers(self, vehicle_id: UUID, interval: Interval) -> bool:
        return self.vehicle_id == vehicle_id and self.interval == interval


def lock_key(vehicle_id: UUID) -> int:
    """ Maps the vehicle id onto the signed 64bit range of advisory locks. """
    return (vehicle_id.int >> 64) - (1 << 63)


class AssignmentLedger(ContextServicesMixin):
    """ The authority on the assignments of each vehicle. Only the ledger
    accepts or rejects intervals and only the ledger writes them.

    The non-cancelled assignments of a vehicle never overlap. To keep it
    that way every write takes a lock on the vehicle, checks the interval
    again and only then flushes. The lock is released when the surrounding
    transaction ends, so it spans the eventual commit as well.

    """

    def __init__(self, context: Context):
        self.context = context
        self.queries = Queries(context)

    def assignment_by_id(self, assignment_id: UUID) -> Assignment:
        assignment = self.session.get(Assignment, assignment_id)

        if assignment is None:
            raise errors.UnknownAssignment(assignment_id)

        return assignment

    def vehicle_by_id(self, vehicle_id: UUID) -> Vehicle:
        vehicle = self.session.get(Vehicle, vehicle_id)

        if vehicle is None:
            raise errors.UnknownVehicle(vehicle_id)

        return vehicle

    def lock(self, vehicle_id: UUID) -> None:
        """ Serializes writers of the same vehicle until the end of the
        current transaction, across processes.

        Only Postgres offers transaction scoped locks, on other databases
        this does nothing.

        """
        if self.session.get_bind().dialect.name != 'postgresql':
            return

        self.session.execute(
            text('SELECT pg_advisory_xact_lock(:key)'),
            {'key': lock_key(vehicle_id)}
        )

    def locked_assignment(self, assignment_id: UUID) -> Assignment:
        """ Locks the vehicle of the assignment and returns the assignment
        as committed by the previous holder of the lock.

        The vehicle is only known once the assignment is loaded, so the
        assignment is loaded twice.

        """
        assignment = self.assignment_by_id(assignment_id)

        self.lock(assignment.vehicle_id)
        self.session.refresh(assignment)

        return assignment

    def propose(
        self,
        vehicle_id: UUID,
        interval: Interval,
        exclude_id: UUID | None = None
    ) -> Proposal:
        """ Checks the interval against the non-cancelled assignments of the
        vehicle. Nothing is written.

        :exclude_id:
            An assignment to ignore, used when revising that same
            assignment.

        """
        query = self.queries.active_assignments(vehicle_id)
        query = self.queries.potential_conflicts(
            query, interval.start, interval.end
        )

        existing = {a.id: a for a in query}

        found = overlap.find_conflict(
            interval,
            ((key, a.interval) for key, a in existing.items()),
            exclude=exclude_id
        )

        return Proposal(
            vehicle_id=vehicle_id,
            interval=interval,
            exclude_id=exclude_id,
            conflicting=existing[found[0]] if found else None
        )

    def insert(
        self,
        assignment: Assignment,
        proposal: Proposal | None
    ) -> Assignment:
        """ Writes a new assignment. Requires the accepted proposal of the
        assignment's interval.

        """
        if proposal is None or not proposal.accepted:
            raise errors.InvariantViolation(
                'inserting an assignment without an accepted proposal'
            )

        if not proposal.covers(assignment.vehicle_id, assignment.interval):
            raise errors.InvariantViolation(
                'the proposal was made for a different interval'
            )

        self.lock(assignment.vehicle_id)

        recheck = self.propose(assignment.vehicle_id, assignment.interval)
        if not recheck.accepted:
            log.error(
                'Accepted interval %s of vehicle %s is taken by %s',
                assignment.interval, assignment.vehicle_id,
                recheck.conflicting_id
            )
            raise errors.InvariantViolation(recheck.conflicting_id)

        self.session.add(assignment)
        self.session.flush()

        return assignment

    def close(self, assignment_id: UUID, end: datetime) -> Assignment:
        """ Gives an open assignment its end.

        Fixing the end may collide with assignments accepted in the meantime,
        the bounded interval is therefore checked like a new one (ignoring
        the assignment itself).

        """
        assignment = self.locked_assignment(assignment_id)

        if not assignment.is_open:
            raise errors.AssignmentAlreadyClosed(assignment_id)

        interval = assignment.interval.bounded(end)

        proposal = self.propose(
            assignment.vehicle_id, interval, exclude_id=assignment.id
        )

        if not proposal.accepted:
            assert proposal.conflicting is not None
            raise errors.OverlappingAssignmentError(
                interval, proposal.conflicting
            )

        assignment.end = end
        self.session.flush()

        return assignment

    def cancel(self, assignment_id: UUID) -> bool:
        """ Removes the assignment from all further checks, keeping the
        record. Returns False if it was cancelled already.

        """
        assignment = self.locked_assignment(assignment_id)

        if assignment.cancelled:
            return False

        assignment.cancelled = True
        self.session.flush()

        return True
