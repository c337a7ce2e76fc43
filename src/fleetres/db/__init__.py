from __future__ import annotations

from fleetres.db.scheduler import Scheduler


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from fleetres.context.core import Context


def new_scheduler(
    context: Context,
    timezone: str = 'UTC',
) -> Scheduler:
    """ Creates a new :class:`~fleetres.db.scheduler.Scheduler` for the
    given context.

    """
    return Scheduler(context, timezone)


__all__ = (
    'new_scheduler',
    'Scheduler',
)
