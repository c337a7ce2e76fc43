""" Decides whether a requested interval collides with the intervals already
held on the same vehicle.

All functions in here are pure, they know nothing about the database. The
existing intervals passed in are expected to belong to non-cancelled
assignments of a single vehicle.

Open-ended intervals are handled conservatively. An open-ended request
claims the vehicle from its start onward, indefinitely. It therefore
collides with every interval which is still running at its start and with
every interval starting at or after it, whether that interval would have
ended before some later, unknown return or not. Likewise a bounded request
collides with any open-ended interval starting before the request ends.

Intervals touching at the boundary never collide, a vehicle may be handed
back and handed out again at the same instant.

"""
from __future__ import annotations


from typing import TypeVar
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable

    from fleetres.modules.interval import Interval

_K = TypeVar('_K')


def intervals_overlap(a: Interval, b: Interval) -> bool:
    """ The symmetric overlap test: ``s1 < e2 and s2 < e1`` with a missing
    end being greater than any start.

    """
    return (
        (b.end is None or a.start < b.end)
        and (a.end is None or b.start < a.end)
    )


def conflicts_with(candidate: Interval, existing: Interval) -> bool:
    """ True if the candidate may not be granted next to the existing
    interval. Unlike :func:`intervals_overlap` this is directional, an
    open-ended candidate also loses against intervals which start later.

    """
    if candidate.end is None:
        return (
            existing.end is None
            or existing.end > candidate.start
            or existing.start >= candidate.start
        )

    if existing.end is None:
        return existing.start < candidate.end

    return existing.start < candidate.end and candidate.start < existing.end


def find_conflict(
    candidate: Interval,
    existing: Iterable[tuple[_K, Interval]],
    exclude: _K | None = None
) -> tuple[_K, Interval] | None:
    """ Returns the first ``(key, interval)`` pair (by start) the candidate
    conflicts with, or None.

    :candidate:
        The requested interval.

    :existing:
        Pairs of keys (usually assignment ids) and intervals.

    :exclude:
        A key to ignore, used when an existing record is revised and must
        not collide with itself.

    """
    ordered = sorted(existing, key=lambda pair: pair[1].start)

    for key, interval in ordered:
        if exclude is not None and key == exclude:
            continue

        if conflicts_with(candidate, interval):
            return key, interval

    return None


def has_conflict(
    candidate: Interval,
    existing: Iterable[tuple[_K, Interval]],
    exclude: _K | None = None
) -> bool:
    return find_conflict(candidate, existing, exclude) is not None
