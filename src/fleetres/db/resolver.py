from __future__ import annotations

import logging
import sedate

from fleetres.context.core import ContextServicesMixin
from fleetres.db.models import Assignment, Vehicle
from fleetres.db.queries import Queries


from typing import Any
from typing import Literal
from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import datetime
    from sedate.types import TzInfoOrName
    from typing_extensions import TypeAlias
    from uuid import UUID

    from fleetres.context.core import Context
    from fleetres.db.models.assignment import AssignmentState

    VehicleState: TypeAlias = Literal[
        'available', 'reserved', 'in_use', 'maintenance', 'decommissioned'
    ]


log = logging.getLogger('fleetres')


CALENDAR_COLORS: dict[AssignmentState, str] = {
    'in_progress': '#dc3545',
    'reservation': '#ffc107',
    'completed': '#6c757d',
}

CALENDAR_LABELS: dict[AssignmentState, str] = {
    'in_progress': 'In progress',
    'reservation': 'Reservation',
    'completed': 'Completed',
}


def calendar_date(date: datetime, timezone: TzInfoOrName) -> str:
    """ Local date without offset, as expected by calendar widgets. """
    local = sedate.to_timezone(date, timezone).replace(tzinfo=None)
    return local.isoformat(timespec='seconds')


class OccupiedPeriod(NamedTuple):
    """ A period during which a vehicle is taken, ready to be rendered. """

    id: UUID
    start: datetime
    end: datetime | None
    title: str
    state: AssignmentState

    @property
    def color(self) -> str:
        return CALENDAR_COLORS[self.state]

    @property
    def description(self) -> str:
        return f'{CALENDAR_LABELS[self.state]} - {self.title}'

    def as_event(self, timezone: TzInfoOrName) -> dict[str, Any]:
        """ Returns the period as FullCalendar event. An open-ended period
        has no end.

        """
        return {
            'id': str(self.id),
            'title': self.title,
            'start': calendar_date(self.start, timezone),
            'end': self.end and calendar_date(self.end, timezone),
            'color': self.color,
            'borderColor': self.color,
            'description': self.description,
        }


class Resolver(ContextServicesMixin):
    """ Answers which assignment holds a vehicle and what is coming up.

    The resolver only reads. Questions without an answer yield None or an
    empty list, never an error, even for unknown vehicles.

    """

    def __init__(self, context: Context):
        self.context = context
        self.queries = Queries(context)

    def active_assignment(
        self,
        vehicle_id: UUID,
        as_of: datetime
    ) -> Assignment | None:
        """ The assignment holding the vehicle at the given date.

        Should the ledger ever contain overlapping assignments, the one
        which started first is returned.

        """
        query = self.queries.active_assignments(vehicle_id)
        query = self.queries.started(query, as_of)
        query = self.queries.occupied(query, as_of)

        candidates = query.all()

        if len(candidates) > 1:
            log.warning(
                'Vehicle %s is held by %i assignments at %s: %s',
                vehicle_id, len(candidates), as_of.isoformat(),
                ', '.join(str(c.id) for c in candidates)
            )

        return candidates[0] if candidates else None

    def next_upcoming(
        self,
        vehicle_id: UUID,
        as_of: datetime
    ) -> Assignment | None:
        """ The queued reservation which will become active next. """
        query = self.queries.active_assignments(vehicle_id)
        query = self.queries.upcoming(query, as_of)

        return query.first()

    def occupied_periods(
        self,
        vehicle_id: UUID,
        as_of: datetime
    ) -> list[Assignment]:
        """ The running and future assignments of the vehicle, by start. """
        query = self.queries.active_assignments(vehicle_id)
        query = self.queries.occupied(query, as_of)

        return query.all()

    def calendar_events(
        self,
        vehicle_id: UUID,
        as_of: datetime
    ) -> list[OccupiedPeriod]:

        return [
            OccupiedPeriod(
                id=assignment.id,
                start=assignment.start,
                end=assignment.end,
                title=self.requester_title(assignment.requester_id),
                state=assignment.state(as_of)
            ) for assignment in self.occupied_periods(vehicle_id, as_of)
        ]

    def vehicle_state(
        self,
        vehicle_id: UUID,
        as_of: datetime
    ) -> VehicleState | None:
        """ Derives the operational state of the vehicle at the given date.

        Vehicles in maintenance or decommissioned keep their state, the
        others are in use while an assignment is active and reserved while
        only queued reservations wait for it.

        """
        vehicle = self.session.get(Vehicle, vehicle_id)

        if vehicle is None:
            return None

        if vehicle.status in ('maintenance', 'decommissioned'):
            return vehicle.status  # type: ignore[return-value]

        if self.active_assignment(vehicle_id, as_of) is not None:
            return 'in_use'

        if self.next_upcoming(vehicle_id, as_of) is not None:
            return 'reserved'

        return 'available'
