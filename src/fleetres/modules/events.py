""" Events are called by the :class:`fleetres.db.scheduler.Scheduler` whenever
an assignment changes. This is where notifications (e-mails, dashboards) are
meant to be hooked in.

The implementation is very simple:

To add an event::

    from fleetres.modules import events

    def on_assignment_created(context, assignment):
        pass

    events.on_assignment_created.append(on_assignment_created)

To remove the same event::

    events.on_assignment_created.remove(on_assignment_created)

Events are called in the order they were added.
"""
from __future__ import annotations


from typing import overload
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from typing_extensions import ParamSpec

    from fleetres.context.core import Context
    from fleetres.db.models import Assignment

    _P = ParamSpec('_P')


class Event(list['Callable[_P, object]']):
    """Event subscription. By http://stackoverflow.com/a/2022629

    A list of callable objects. Calling an instance of this will cause a
    call to each item in the list in ascending order by index.

    """
    # NOTE: This is only used for binding the correct `ParamSpec` for callback
    #       protocols, otherwise we have to define a pseudo-type, that doesn't
    #       look like an instance of `Event`...
    @overload
    def __init__(self, f: type[Callable[_P, object]]) -> None: ...
    @overload
    def __init__(self) -> None: ...

    def __init__(self, f: object = None) -> None:
        return

    def __call__(self, *args: _P.args, **kwargs: _P.kwargs) -> None:
        for f in self:
            f(*args, **kwargs)


on_assignment_created: Event[Context, Assignment] = Event()
""" Called when an assignment (or a future reservation) was accepted, with
the following arguments:

    :context:
        The :class:`fleetres.context.core.Context` used when creating the
        assignment.

    :assignment:
        The :class:`fleetres.db.models.Assignment` which was flushed, but
        not yet commited.

"""

on_assignment_closed: Event[Context, Assignment] = Event()
""" Called when an open assignment received its end (the vehicle was
returned), with the following arguments:

    :context:
        The :class:`fleetres.context.core.Context` used when closing the
        assignment.

    :assignment:
        The closed :class:`fleetres.db.models.Assignment`.

"""

on_assignment_cancelled: Event[Context, Assignment] = Event()
""" Called when an assignment is cancelled, with the following arguments:

    :context:
        The :class:`fleetres.context.core.Context` used when cancelling the
        assignment.

    :assignment:
        The cancelled :class:`fleetres.db.models.Assignment`. It is kept in
        the database for history.

    Cancelling an already cancelled assignment does not call this event.

"""
