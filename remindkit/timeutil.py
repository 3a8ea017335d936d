"""Helpers for comparing timestamps that may or may not carry a timezone."""

from __future__ import annotations

from datetime import datetime


def align(other: datetime, reference: datetime) -> datetime:
    """Return *other* expressed so it compares cleanly with *reference*.

    Naive values are treated as wall-clock time in the reference's zone;
    aware values are converted to it (or stripped when the reference is naive).
    """
    if reference.tzinfo is None:
        if other.tzinfo is not None:
            return other.replace(tzinfo=None)
        return other
    if other.tzinfo is None:
        return other.replace(tzinfo=reference.tzinfo)
    return other.astimezone(reference.tzinfo)


def floor_minute(instant: datetime) -> datetime:
    return instant.replace(second=0, microsecond=0)
