"""Formatting and retrospective numbers for display."""

import math
from dataclasses import dataclass


def format_clock(ms):
    """Format elapsed milliseconds as HH:MM:SS. Negative values clamp to zero."""
    seconds = max(0, int(ms // 1000))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def format_minutes(minutes):
    """Format decimal minutes as M:SS (2.5 -> 2:30)."""
    whole, secs = divmod(int(round(minutes * 60)), 60)
    return f"{whole}:{secs:02d}"


def format_difference(estimated, actual):
    """Signed over/under against the estimate, e.g. +1:30 over or -0:45 under."""
    diff = actual - estimated
    sign = "+" if diff >= 0 else "-"
    return f"{sign}{format_minutes(abs(diff))}"


def item_accuracy(item):
    """How close the recorded time came to the estimate, as a whole percentage.

    Uses the stored ``actual_minutes`` (already rounded to 0.1 minute), so
    two items with the same recorded time always show the same accuracy.
    Can go negative when an item ran more than double its estimate.
    """
    if item.actual_minutes is None or item.estimated_minutes <= 0:
        return None
    diff = abs(item.actual_minutes - item.estimated_minutes)
    return math.floor((1 - diff / item.estimated_minutes) * 100 + 0.5)


@dataclass(frozen=True)
class ItemRow:
    name: str
    estimated_minutes: float
    actual_minutes: float
    difference: str
    accuracy: int | None


@dataclass(frozen=True)
class MeetingSummary:
    meeting_id: str
    date: str
    total_estimated_minutes: float
    total_actual_minutes: float
    rows: tuple

    @property
    def total_difference(self):
        return format_difference(self.total_estimated_minutes, self.total_actual_minutes)

    @property
    def overran(self):
        return self.total_actual_minutes > self.total_estimated_minutes

    @classmethod
    def of(cls, meeting):
        rows = tuple(
            ItemRow(
                name=item.name,
                estimated_minutes=item.estimated_minutes,
                actual_minutes=item.actual_minutes or 0,
                difference=format_difference(item.estimated_minutes, item.actual_minutes or 0),
                accuracy=item_accuracy(item),
            )
            for item in meeting.agenda_items
        )
        return cls(
            meeting_id=meeting.id,
            date=meeting.date,
            total_estimated_minutes=meeting.total_estimated_minutes,
            total_actual_minutes=round(meeting.total_actual_minutes, 1),
            rows=rows,
        )
