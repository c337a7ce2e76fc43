from __future__ import annotations

import sedate

from datetime import datetime
from decimal import Decimal
from uuid import UUID
from uuid import uuid4 as new_uuid

from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import ForeignKey
from sqlalchemy.schema import Index

from fleetres.db.models.base import ORMBase
from fleetres.db.models.timestamp import TimestampMixin
from fleetres.db.models.vehicle import Vehicle
from fleetres.modules.interval import Interval
from fleetres.modules.utils import hours_between


from typing import Any
from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import timedelta
    from sedate.types import TzInfoOrName
    from typing_extensions import TypeAlias


Reason: TypeAlias = Literal[
    'daily_use', 'business_trip', 'maintenance', 'emergency', 'other'
]
AssignmentState: TypeAlias = Literal['in_progress', 'reservation', 'completed']


class Assignment(TimestampMixin, ORMBase):
    """Binds a vehicle to a requester for an interval.

    An assignment without an end is open-ended, the vehicle is held until
    further notice. Assignments are never deleted, cancelling one only
    flags it so it no longer takes part in any overlap check.

    """

    __tablename__ = 'assignments'

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=new_uuid
    )

    vehicle_id: Mapped[UUID] = mapped_column(
        ForeignKey(Vehicle.id, ondelete='RESTRICT')
    )

    vehicle: Mapped[Vehicle] = relationship(Vehicle, lazy='joined')

    #: opaque reference to the user holding the vehicle
    requester_id: Mapped[str] = mapped_column(types.Unicode(450))

    start: Mapped[datetime]

    #: None if the assignment is open-ended
    end: Mapped[datetime | None]

    #: the timezone the assignment was created in, used for display
    timezone: Mapped[str] = mapped_column(types.String(), default='UTC')

    reason: Mapped[Reason] = mapped_column(
        types.Enum(
            'daily_use', 'business_trip', 'maintenance', 'emergency', 'other',
            name='assignment_reason'
        ),
        default='daily_use'
    )

    start_odometer: Mapped[Decimal | None]

    end_odometer: Mapped[Decimal | None]

    note: Mapped[str | None] = mapped_column(types.Unicode(1000))

    return_note: Mapped[str | None] = mapped_column(types.Unicode(1000))

    #: Custom data reserved for the application
    data: Mapped[dict[str, Any] | None]

    cancelled: Mapped[bool] = mapped_column(default=False)

    __table_args__ = (
        Index('assignment_vehicle_period_ix', 'vehicle_id', 'start', 'end'),
        Index('assignment_requester_ix', 'requester_id', 'start'),
    )

    def __init__(
        self,
        vehicle_id: UUID,
        requester_id: str,
        start: datetime,
        end: datetime | None = None,
        reason: Reason = 'daily_use',
        timezone: str = 'UTC',
        start_odometer: Decimal | None = None,
        note: str | None = None,
        data: dict[str, Any] | None = None,
        id: UUID | None = None
    ) -> None:
        self.id = id or new_uuid()
        self.vehicle_id = vehicle_id
        self.requester_id = requester_id
        self.start = start
        self.end = end
        self.reason = reason
        self.timezone = timezone
        self.start_odometer = start_odometer
        self.note = note
        self.data = data
        self.cancelled = False

    def __repr__(self) -> str:
        end = self.end.isoformat() if self.end else 'open'
        return f'<Assignment {self.id} {self.start.isoformat()} - {end}>'

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    @property
    def is_open(self) -> bool:
        return self.end is None

    def is_in_progress(self, as_of: datetime) -> bool:
        return self.interval.contains(as_of)

    def is_reservation(self, as_of: datetime) -> bool:
        """ True if the assignment was booked for the future. """
        return self.start > as_of

    def is_completed(self, as_of: datetime) -> bool:
        return self.end is not None and self.end <= as_of

    def state(self, as_of: datetime) -> AssignmentState:
        if self.is_in_progress(as_of):
            return 'in_progress'
        if self.is_reservation(as_of):
            return 'reservation'
        return 'completed'

    @property
    def duration(self) -> timedelta | None:
        if self.end is None:
            return None
        return self.end - self.start

    @property
    def duration_hours(self) -> float | None:
        if self.end is None:
            return None
        return hours_between(self.start, self.end)

    @property
    def duration_days(self) -> int | None:
        """ The number of calendar days touched, counted in the timezone of
        the assignment.

        """
        if self.end is None:
            return None

        start = self.display_start().date()
        end = self.display_end()
        assert end is not None
        return (end.date() - start).days

    @property
    def distance(self) -> Decimal | None:
        if self.start_odometer is None or self.end_odometer is None:
            return None
        return self.end_odometer - self.start_odometer

    def display_start(
        self,
        timezone: TzInfoOrName | None = None
    ) -> datetime:
        return sedate.to_timezone(self.start, timezone or self.timezone)

    def display_end(
        self,
        timezone: TzInfoOrName | None = None
    ) -> datetime | None:
        if self.end is None:
            return None
        return sedate.to_timezone(self.end, timezone or self.timezone)
