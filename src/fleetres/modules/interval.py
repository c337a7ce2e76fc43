from __future__ import annotations

from fleetres.modules import errors


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import datetime
    from typing_extensions import Self


class Interval(NamedTuple):
    """ A half-open timespan ``[start, end)``.

    An end of ``None`` means the interval is open-ended, it reaches into
    the unbounded future. Use :meth:`create` to get a validated interval,
    the plain constructor does not check anything.

    """

    start: datetime
    end: datetime | None = None

    @classmethod
    def create(cls, start: datetime, end: datetime | None = None) -> Self:
        if end is not None and end <= start:
            raise errors.InvalidInterval(start, end)

        return cls(start, end)

    @property
    def is_open(self) -> bool:
        return self.end is None

    def contains(self, instant: datetime) -> bool:
        if instant < self.start:
            return False

        return self.end is None or instant < self.end

    def bounded(self, end: datetime) -> Self:
        """ Returns a validated copy ending at the given date. """
        return self.create(self.start, end)
