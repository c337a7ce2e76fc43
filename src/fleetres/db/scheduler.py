from __future__ import annotations

import logging
import sedate

from contextlib import contextmanager
from psycopg2.extensions import TransactionRollbackError
from sqlalchemy.exc import DBAPIError
from uuid import UUID

from fleetres.context.core import ContextServicesMixin
from fleetres.db.ledger import AssignmentLedger
from fleetres.db.models import ORMBase, Assignment, Vehicle
from fleetres.db.queries import Queries
from fleetres.db.resolver import Resolver
from fleetres.modules import errors
from fleetres.modules import events
from fleetres.modules import utils
from fleetres.modules.interval import Interval


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import datetime
    from decimal import Decimal
    from sqlalchemy.orm import Query
    from typing_extensions import Self

    from fleetres.context.core import Context
    from fleetres.db.ledger import Proposal
    from fleetres.db.models.assignment import Reason
    from fleetres.db.resolver import OccupiedPeriod, VehicleState


log = logging.getLogger('fleetres')


def as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(value)


def is_serialization_failure(error: DBAPIError) -> bool:
    return isinstance(getattr(error, 'orig', None), TransactionRollbackError)


class Scheduler(ContextServicesMixin):
    """ The Scheduler decides who holds which vehicle when. It is the public
    API of fleetres, the ledger and the resolver behind it are not meant to
    be used directly.

    Write operations flush, they do not commit. Commit through
    :meth:`commit`, which turns failures caused by concurrent writers into
    :class:`~fleetres.modules.errors.ConcurrentAssignmentError`.

    """

    def __init__(
        self,
        context: Context,
        timezone: str = 'UTC',
        assignment_cls: type[Assignment] = Assignment
    ):
        """ Initializes a new Scheduler instance.

        :context:
            The :class:`fleetres.context.core.Context` this scheduler should
            operate on. Acquire a context by using
            :func:`fleetres.context.registry.Registry.register_context`.

        :timezone:
            Dates passed to the scheduler that are not timezone-aware are
            assumed to be of this timezone! New assignments remember it for
            display purposes.

        :assignment_cls:
            The class used for new assignments, for applications which
            extend the model.

        """

        assert isinstance(timezone, str)

        self.context = context
        self.timezone = timezone
        self.assignment_cls = assignment_cls

        self.queries = Queries(context)
        self.ledger = AssignmentLedger(context)
        self.resolver = Resolver(context)

    def clone(self) -> Self:
        """ Clones the scheduler. The result will be a new scheduler using the
        same context, timezone and assignment class.

        """

        return self.__class__(
            self.context,
            self.timezone,
            self.assignment_cls
        )

    def setup_database(self) -> None:
        """ Creates the tables and indices required for fleetres. This needs
        to be called once per database. Multiple invocations won't hurt but
        they are unnecessary.

        """
        ORMBase.metadata.create_all(self.session.bind)

    @contextmanager
    def serialization_guard(self) -> Iterator[None]:
        """ Rolls back and raises a retryable conflict if the database
        refused the transaction because of a concurrent writer.

        """
        try:
            yield
        except DBAPIError as e:
            if not is_serialization_failure(e):
                raise

            self.rollback()
            log.warning('Concurrent write rolled back: %s', e.orig)
            raise errors.ConcurrentAssignmentError() from e

    def commit(self) -> None:
        with self.serialization_guard():
            self.session.commit()

    def _prepare_date(self, date: datetime) -> datetime:
        return utils.standardize(date, self.timezone)

    def _prepare_interval(
        self,
        start: datetime,
        end: datetime | None
    ) -> Interval:
        return Interval.create(
            utils.standardize(start, self.timezone),
            utils.standardize(end, self.timezone)
        )

    def _as_of(self, as_of: datetime | None) -> datetime:
        return self._prepare_date(as_of) if as_of else self.now()

    def _today(self) -> datetime:
        return sedate.align_date_to_day(
            sedate.to_timezone(self.now(), self.timezone),
            self.timezone, 'down'
        )

    def assert_within_limits(self, interval: Interval) -> None:
        """ Applies the optional limits configured on the context, see
        :mod:`fleetres.context.settings`.

        """
        max_past = self.context.get_setting('max_start_in_past')
        max_future = self.context.get_setting('max_end_in_future')
        min_duration = self.context.get_setting('min_duration')

        if max_past is not None and interval.start < self._today() - max_past:
            raise errors.StartTooFarInPast(interval.start)

        if interval.end is None:
            return

        if max_future is not None:
            if interval.end > self._today() + max_future:
                raise errors.EndTooFarInFuture(interval.end)

        if min_duration is not None:
            if interval.end - interval.start < min_duration:
                raise errors.AssignmentTooShort(interval.end - interval.start)

    def vehicle_by_id(self, vehicle_id: UUID | str) -> Vehicle:
        return self.ledger.vehicle_by_id(as_uuid(vehicle_id))

    def assignment_by_id(self, assignment_id: UUID | str) -> Assignment:
        return self.ledger.assignment_by_id(as_uuid(assignment_id))

    def assignments_by_vehicle(
        self,
        vehicle_id: UUID | str,
        include_closed: bool = True,
        include_cancelled: bool = False
    ) -> Query[Assignment]:
        """ The history of the vehicle, latest first. Excluding the closed
        assignments leaves the open-ended ones.

        """
        query = self.queries.assignments(as_uuid(vehicle_id))

        if not include_cancelled:
            query = self.queries.active(query)

        if not include_closed:
            query = query.filter(Assignment.end == None)

        return query.order_by(Assignment.start.desc())

    def assignments_by_requester(
        self,
        requester_id: str,
        include_closed: bool = True
    ) -> Query[Assignment]:
        return self.queries.assignments_by_requester(
            requester_id, include_closed=include_closed
        )

    def assignments_in_progress(
        self,
        as_of: datetime | None = None
    ) -> Query[Assignment]:
        return self.queries.assignments_in_progress(self._as_of(as_of))

    def upcoming_reservations(
        self,
        as_of: datetime | None = None
    ) -> Query[Assignment]:
        return self.queries.upcoming_reservations(self._as_of(as_of))

    def requester_has_active(
        self,
        requester_id: str,
        as_of: datetime | None = None
    ) -> bool:
        """ Tells if the requester holds or has reserved any vehicle at the
        given date. Closed and cancelled assignments do not count.

        """
        return self.queries.requester_has_active(
            requester_id, self._as_of(as_of)
        )

    def propose_interval(
        self,
        vehicle_id: UUID | str,
        start: datetime,
        end: datetime | None = None,
        exclude_id: UUID | str | None = None
    ) -> Proposal:
        """ Tells if the vehicle is free for the given interval, without
        reserving it. Check ``accepted`` and ``conflicting`` on the result.

        """
        interval = self._prepare_interval(start, end)

        return self.ledger.propose(
            as_uuid(vehicle_id),
            interval,
            exclude_id=as_uuid(exclude_id) if exclude_id else None
        )

    def create_assignment(
        self,
        vehicle_id: UUID | str,
        requester_id: str,
        start: datetime,
        end: datetime | None = None,
        reason: Reason = 'daily_use',
        start_odometer: Decimal | None = None,
        note: str | None = None,
        data: dict[str, Any] | None = None
    ) -> Assignment:
        """ Assigns the vehicle to the requester. Assignments starting in the
        future are reservations, any number of them may be queued on the
        same vehicle as long as they do not overlap.

        :end:
            The end of the assignment, exclusive. Without an end the
            assignment is open-ended and blocks the vehicle from its start
            onward, including every later reservation.

        Raises :class:`~fleetres.modules.errors.InvalidInterval` if the end
        is not after the start,
        :class:`~fleetres.modules.errors.OverlappingAssignmentError` if the
        vehicle is taken and
        :class:`~fleetres.modules.errors.ConcurrentAssignmentError` if
        another writer got in the way.

        """
        vehicle_id = as_uuid(vehicle_id)
        interval = self._prepare_interval(start, end)

        self.assert_within_limits(interval)

        with self.serialization_guard():
            # nothing is read before the lock, later statements see the
            # rows committed by whoever held it before us
            self.ledger.lock(vehicle_id)

            vehicle = self.ledger.vehicle_by_id(vehicle_id)
            if not vehicle.is_assignable:
                raise errors.VehicleNotAssignable(vehicle_id)

            proposal = self.ledger.propose(vehicle_id, interval)
            if not proposal.accepted:
                assert proposal.conflicting is not None
                raise errors.OverlappingAssignmentError(
                    interval, proposal.conflicting
                )

            assignment = self.assignment_cls(
                vehicle_id=vehicle_id,
                requester_id=requester_id,
                start=interval.start,
                end=interval.end,
                reason=reason,
                timezone=self.timezone,
                start_odometer=start_odometer,
                note=note,
                data=data
            )

            try:
                self.ledger.insert(assignment, proposal)
            except errors.InvariantViolation as e:
                self.rollback()
                log.error(
                    'Invariant violated on vehicle %s: %s', vehicle_id, e
                )
                raise errors.ConcurrentAssignmentError() from e

        log.info(
            'Assignment %s created: vehicle %s, requester %s, %s - %s',
            assignment.id, vehicle.title, requester_id,
            interval.start.isoformat(),
            interval.end.isoformat() if interval.end else 'open-ended'
        )

        events.on_assignment_created(self.context, assignment)

        return assignment

    def close_assignment(
        self,
        assignment_id: UUID | str,
        end: datetime,
        end_odometer: Decimal | None = None,
        return_note: str | None = None
    ) -> Assignment:
        """ Records the return of the vehicle, giving an open assignment its
        end.

        Raises :class:`~fleetres.modules.errors.UnknownAssignment`,
        :class:`~fleetres.modules.errors.AssignmentAlreadyClosed`,
        :class:`~fleetres.modules.errors.InvalidInterval` or
        :class:`~fleetres.modules.errors.OverlappingAssignmentError` if the
        now bounded interval collides with another assignment.

        """
        assignment_id = as_uuid(assignment_id)
        end = self._prepare_date(end)

        if not self.context.get_setting('allow_future_return'):
            if end > self.now():
                raise errors.ReturnInFuture(end)

        assignment = self.ledger.assignment_by_id(assignment_id)

        if end_odometer is not None and assignment.start_odometer is not None:
            if end_odometer < assignment.start_odometer:
                raise errors.InvalidOdometer(
                    assignment.start_odometer, end_odometer
                )

        with self.serialization_guard():
            self.ledger.close(assignment_id, end)

        if end_odometer is not None:
            assignment.end_odometer = end_odometer

        if return_note is not None:
            assignment.return_note = return_note

        log.info(
            'Assignment %s closed: vehicle %s, requester %s, %.1f hours',
            assignment.id, assignment.vehicle.title, assignment.requester_id,
            assignment.duration_hours
        )

        events.on_assignment_closed(self.context, assignment)

        return assignment

    def cancel_assignment(self, assignment_id: UUID | str) -> Assignment:
        """ Cancels the assignment, keeping it for history. Cancelling a
        cancelled assignment does nothing.

        """
        assignment_id = as_uuid(assignment_id)

        with self.serialization_guard():
            changed = self.ledger.cancel(assignment_id)

        assignment = self.ledger.assignment_by_id(assignment_id)

        if changed:
            log.info(
                'Assignment %s cancelled: vehicle %s, requester %s',
                assignment.id, assignment.vehicle.title,
                assignment.requester_id
            )
            events.on_assignment_cancelled(self.context, assignment)

        return assignment

    def query_active(
        self,
        vehicle_id: UUID | str,
        as_of: datetime | None = None
    ) -> Assignment | None:
        return self.resolver.active_assignment(
            as_uuid(vehicle_id), self._as_of(as_of)
        )

    def query_upcoming(
        self,
        vehicle_id: UUID | str,
        as_of: datetime | None = None
    ) -> Assignment | None:
        return self.resolver.next_upcoming(
            as_uuid(vehicle_id), self._as_of(as_of)
        )

    def query_occupied(
        self,
        vehicle_id: UUID | str,
        as_of: datetime | None = None
    ) -> list[Assignment]:
        return self.resolver.occupied_periods(
            as_uuid(vehicle_id), self._as_of(as_of)
        )

    def calendar_events(
        self,
        vehicle_id: UUID | str,
        as_of: datetime | None = None
    ) -> list[dict[str, Any]]:
        """ The occupied periods of the vehicle as calendar events, in the
        timezone of the scheduler.

        """
        periods: list[OccupiedPeriod] = self.resolver.calendar_events(
            as_uuid(vehicle_id), self._as_of(as_of)
        )
        return [period.as_event(self.timezone) for period in periods]

    def vehicle_state(
        self,
        vehicle_id: UUID | str,
        as_of: datetime | None = None
    ) -> VehicleState | None:
        return self.resolver.vehicle_state(
            as_uuid(vehicle_id), self._as_of(as_of)
        )
