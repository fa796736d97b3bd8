"""Elapsed-time phrases used by the cadence insight lines."""

from __future__ import annotations

import logging
import math

from .models import Metadata
from .snapshot_store import parse_timestamp

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def _number(value: float) -> str:
    if value == int(value):
        return str(int(value))
    return f"{value:.1f}"


def _plural(value: float, unit: str) -> str:
    return f"{_number(value)} {unit}{'' if value == 1 else 's'} ago"


def format_time_ago(hours: float) -> str:
    """Render an elapsed duration given in hours.

    Under an hour: whole minutes. Under a day: hours to one decimal.
    Otherwise days to one decimal. Negative durations read as zero.
    """
    hours = max(0.0, hours)
    if hours < 1:
        return _plural(_round_half_up(hours * 60), "minute")
    if hours < HOURS_PER_DAY:
        return _plural(_round_half_up(hours, 1), "hour")
    return _plural(_round_half_up(hours / HOURS_PER_DAY, 1), "day")


def elapsed_hours(metadata: Metadata | None) -> float | None:
    if metadata is None or not metadata.last_update or not metadata.previous_update:
        return None
    try:
        last = parse_timestamp(metadata.last_update)
        previous = parse_timestamp(metadata.previous_update)
    except ValueError:
        logger.debug(
            "unparseable metadata timestamps: %r / %r",
            metadata.last_update,
            metadata.previous_update,
        )
        return None
    return (last - previous).total_seconds() / 3600


def time_context(metadata: Metadata | None) -> str | None:
    hours = elapsed_hours(metadata)
    if hours is None:
        return None
    return format_time_ago(hours)


__all__ = ["format_time_ago", "elapsed_hours", "time_context"]
