"""Service occupancy windows as half-open minute intervals within one day"""

from dataclasses import dataclass
from datetime import time

MINUTES_PER_DAY = 24 * 60


def minutes_since_midnight(value: time) -> int:
    return value.hour * 60 + value.minute


def format_minutes(minutes: int) -> str:
    """Minutes since midnight as 'HH:MM' (1440 renders as '24:00')"""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class Interval:
    """[start, end) in minutes since midnight"""

    start: int
    end: int

    @classmethod
    def from_start(cls, start: time, duration_minutes: int) -> "Interval":
        """
        Build the occupancy window of an appointment.

        Raises:
            ValueError: If the duration is negative or the window runs past midnight
        """
        if duration_minutes < 0:
            raise ValueError("Duration cannot be negative")
        begin = minutes_since_midnight(start)
        end = begin + duration_minutes
        if end > MINUTES_PER_DAY:
            raise ValueError(
                f"Appointment at {format_minutes(begin)} for {duration_minutes} minutes "
                "would run past midnight"
            )
        return cls(begin, end)

    def overlaps(self, other: "Interval") -> bool:
        # Strict comparison: back-to-back windows (end == other.start) do not overlap
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"{format_minutes(self.start)}-{format_minutes(self.end)}"


def intervals_overlap(start_a: time, duration_a: int, start_b: time, duration_b: int) -> bool:
    return Interval.from_start(start_a, duration_a).overlaps(Interval.from_start(start_b, duration_b))
