from __future__ import annotations

from decimal import Decimal
from uuid import UUID
from uuid import uuid4 as new_uuid

from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import Mapped

from fleetres.db.models.base import ORMBase
from fleetres.db.models.timestamp import TimestampMixin


from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing_extensions import TypeAlias


VehicleStatus: TypeAlias = Literal[
    'available', 'in_use', 'maintenance', 'decommissioned', 'reserved'
]
Ownership: TypeAlias = Literal['owned', 'rented']


class Vehicle(TimestampMixin, ORMBase):
    """Describes a vehicle, the resource handed out by assignments.

    Vehicles are maintained by the application, fleetres only reads them to
    make sure an assignment targets an existing vehicle which has not been
    decommissioned.

    """

    __tablename__ = 'vehicles'

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=new_uuid
    )

    #: the licence plate, unique
    plate: Mapped[str] = mapped_column(
        types.Unicode(20),
        unique=True
    )

    description: Mapped[str | None] = mapped_column(types.Unicode(200))

    status: Mapped[VehicleStatus] = mapped_column(
        types.Enum(
            'available', 'in_use', 'maintenance', 'decommissioned', 'reserved',
            name='vehicle_status'
        ),
        default='available'
    )

    ownership: Mapped[Ownership] = mapped_column(
        types.Enum('owned', 'rented', name='vehicle_ownership'),
        default='owned'
    )

    odometer: Mapped[Decimal | None]

    def __init__(
        self,
        plate: str,
        description: str | None = None,
        status: VehicleStatus = 'available',
        ownership: Ownership = 'owned',
        odometer: Decimal | None = None,
        id: UUID | None = None
    ) -> None:
        # NOTE: Avoid auto-generated __init__, the mypy plugin is
        #       deprecated and cannot be used with newer versions.
        self.id = id or new_uuid()
        self.plate = plate
        self.description = description
        self.status = status
        self.ownership = ownership
        self.odometer = odometer

    def __repr__(self) -> str:
        return f'<Vehicle {self.plate} ({self.status})>'

    @property
    def is_assignable(self) -> bool:
        return self.status != 'decommissioned'

    @property
    def title(self) -> str:
        if self.description:
            return f'{self.description} - {self.plate}'
        return self.plate
