from __future__ import annotations


from typing import ClassVar
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from uuid import UUID

    from fleetres.db.models import Assignment
    from fleetres.modules.interval import Interval


class FleetresError(Exception):
    """ Base class of all errors raised by fleetres.

    The ``code`` is stable and meant to be handed to callers which need to
    render the error without knowing the exception classes, e.g. as
    ``{'error': error.code}``.

    """

    code: ClassVar[str] = 'error'
    retryable: ClassVar[bool] = False


class ContextAlreadyExists(FleetresError):
    pass


class UnknownContext(FleetresError):
    pass


class ContextIsLocked(FleetresError):
    pass


class UnknownService(FleetresError):
    pass


class UnknownSetting(FleetresError):
    pass


class NotTimezoneAware(FleetresError):
    pass


class InvalidInterval(FleetresError):
    """ The end of the interval is not after its start. """

    code = 'invalid_interval'


class StartTooFarInPast(InvalidInterval):
    pass


class EndTooFarInFuture(InvalidInterval):
    pass


class AssignmentTooShort(InvalidInterval):
    pass


class ReturnInFuture(InvalidInterval):
    pass


class NotFound(FleetresError):

    code = 'not_found'


class UnknownAssignment(NotFound):
    pass


class UnknownVehicle(NotFound):
    pass


class AssignmentAlreadyClosed(FleetresError):

    code = 'already_closed'


class VehicleNotAssignable(FleetresError):

    code = 'not_assignable'


class InvalidOdometer(FleetresError):

    code = 'invalid_odometer'


class AssignmentConflict(FleetresError):
    """ The requested interval collides with an active assignment. """

    code = 'conflict'


class OverlappingAssignmentError(AssignmentConflict):
    """ Carries the colliding assignment. Its id and interval are copied
    when the error is raised, they stay readable after a rollback.

    """

    __slots__ = ('interval', 'existing', 'existing_id', 'existing_interval')

    def __init__(
        self,
        interval: Interval,
        existing: Assignment
    ):
        super().__init__(interval, existing.id)
        self.interval = interval
        self.existing = existing
        self.existing_id: UUID = existing.id

        # lets the caller show "vehicle busy until ..."
        self.existing_interval: Interval = existing.interval


class ConcurrentAssignmentError(AssignmentConflict):
    """ Another transaction changed the same vehicle at the same time.

    The transaction has been rolled back, the caller may retry with a fresh
    check of the interval.

    """

    retryable = True


class InvariantViolation(FleetresError):
    """ The ledger was asked to commit an interval it did not accept. """

    code = 'invariant_violation'
