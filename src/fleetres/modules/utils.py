from __future__ import annotations

import sedate


from typing import overload
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import datetime
    from sedate.types import TzInfoOrName


@overload
def standardize(date: datetime, timezone: TzInfoOrName) -> datetime: ...
@overload
def standardize(date: None, timezone: TzInfoOrName) -> None: ...


def standardize(
    date: datetime | None,
    timezone: TzInfoOrName
) -> datetime | None:
    """ Turns the given date into a timezone aware UTC date. Naive dates are
    assumed to be in the given timezone.

    """
    if date is None:
        return None

    return sedate.standardize_date(date, timezone)


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600
