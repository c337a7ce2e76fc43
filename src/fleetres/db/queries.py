from __future__ import annotations

from fleetres.context.core import ContextServicesMixin
from fleetres.db.models import Assignment
from sqlalchemy.sql import and_, or_


from typing import TypeVar
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import datetime
    from sqlalchemy.orm import Query
    from uuid import UUID

    from fleetres.context.core import Context

_T = TypeVar('_T')


class Queries(ContextServicesMixin):
    """ Contains helper methods independent of a single vehicle.

    The static methods take an assignment query and narrow it down, they
    are the SQL counterpart of :mod:`fleetres.modules.overlap` and are used
    to keep the number of rows loaded for a check small. Decisions are
    always taken by the overlap module on the loaded rows.

    """

    def __init__(self, context: Context):
        self.context = context

    def assignments(self, vehicle_id: UUID) -> Query[Assignment]:
        query = self.session.query(Assignment)
        query = query.filter(Assignment.vehicle_id == vehicle_id)

        return query

    def active_assignments(self, vehicle_id: UUID) -> Query[Assignment]:
        """ The non-cancelled assignments of the vehicle, by start. """
        query = self.active(self.assignments(vehicle_id))
        query = query.order_by(Assignment.start)

        return query

    @staticmethod
    def active(query: Query[_T]) -> Query[_T]:
        return query.filter(Assignment.cancelled == False)

    @staticmethod
    def potential_conflicts(
        query: Query[_T],
        start: datetime,
        end: datetime | None
    ) -> Query[_T]:
        """ Takes an assignment query and limits it to the assignments
        a new interval from start to end would conflict with.

        """
        if end is None:
            return query.filter(
                or_(
                    Assignment.end == None,
                    Assignment.end > start,
                    Assignment.start >= start
                )
            )

        return query.filter(
            or_(
                and_(
                    Assignment.end == None,
                    Assignment.start < end
                ),
                and_(
                    Assignment.end != None,
                    Assignment.start < end,
                    start < Assignment.end
                )
            )
        )

    @staticmethod
    def occupied(query: Query[_T], as_of: datetime) -> Query[_T]:
        """ Limits the query to assignments which are not over yet. """
        return query.filter(
            or_(
                Assignment.end == None,
                Assignment.end > as_of
            )
        )

    @staticmethod
    def started(query: Query[_T], as_of: datetime) -> Query[_T]:
        return query.filter(Assignment.start <= as_of)

    @staticmethod
    def upcoming(query: Query[_T], as_of: datetime) -> Query[_T]:
        return query.filter(Assignment.start > as_of)

    def assignments_by_requester(
        self,
        requester_id: str,
        include_closed: bool = True,
        include_cancelled: bool = False
    ) -> Query[Assignment]:

        query = self.session.query(Assignment)
        query = query.filter(Assignment.requester_id == requester_id)

        if not include_cancelled:
            query = self.active(query)

        if not include_closed:
            query = query.filter(Assignment.end == None)

        query = query.order_by(Assignment.start.desc())

        return query

    def fleet(self) -> Query[Assignment]:
        return self.active(self.session.query(Assignment))

    def assignments_in_progress(self, as_of: datetime) -> Query[Assignment]:
        """ The assignments holding a vehicle at the given date, across all
        vehicles, by start.

        """
        query = self.started(self.fleet(), as_of)
        query = self.occupied(query, as_of)

        return query.order_by(Assignment.start)

    def upcoming_reservations(self, as_of: datetime) -> Query[Assignment]:
        """ The queued reservations of all vehicles, by start. """
        query = self.upcoming(self.fleet(), as_of)

        return query.order_by(Assignment.start)

    def requester_has_active(self, requester_id: str, as_of: datetime) -> bool:
        """ True if the requester holds a vehicle at the given date or has
        one reserved for later.

        """
        query = self.fleet().filter(Assignment.requester_id == requester_id)
        query = self.occupied(query, as_of)

        return bool(self.session.query(query.exists()).scalar())
