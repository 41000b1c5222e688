"""Half-open time ranges within one calendar day, in minutes since midnight."""
from dataclasses import dataclass

MINUTES_PER_DAY = 24 * 60


def parse_clock(value: str, allow_end_of_day: bool = False) -> int:
    """Parse "HH:MM" into minutes since midnight.

    "24:00" is only accepted as the end of a range.
    """
    if not isinstance(value, str) or ":" not in value:
        raise ValueError(f"Invalid time {value!r}. Use HH:MM")
    hours_str, minutes_str = value.strip().split(":", 1)
    if not hours_str.isdigit() or not minutes_str.isdigit() or len(minutes_str) != 2:
        raise ValueError(f"Invalid time {value!r}. Use HH:MM")

    hours, minutes = int(hours_str), int(minutes_str)
    if minutes > 59:
        raise ValueError(f"Invalid time {value!r}")
    if hours == 24 and minutes == 0 and allow_end_of_day:
        return MINUTES_PER_DAY
    if hours > 23:
        raise ValueError(f"Invalid time {value!r}")
    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class TimeRange:
    start: int
    end: int

    def __post_init__(self):
        if not (0 <= self.start <= MINUTES_PER_DAY and 0 <= self.end <= MINUTES_PER_DAY):
            raise ValueError("Time range must lie within a single day")
        if self.end < self.start:
            raise ValueError("Time range cannot cross midnight")

    @classmethod
    def parse(cls, from_time: str, to_time: str) -> "TimeRange":
        start = parse_clock(from_time)
        end = parse_clock(to_time, allow_end_of_day=True)
        if end < start:
            raise ValueError("to_time must not be earlier than from_time; a booking cannot span two dates")
        return cls(start, end)

    @property
    def duration(self) -> int:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.end == self.start

    def overlaps(self, other: "TimeRange") -> bool:
        # [a, b) and [c, d) overlap iff a < d and c < b; touching ends do not
        if self.is_empty or other.is_empty:
            return False
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeRange") -> bool:
        return self.start <= other.start and other.end <= self.end

    def __str__(self):
        return f"{format_clock(self.start)}-{format_clock(self.end)}"
