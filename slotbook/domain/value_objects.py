"""Domain primitives that enforce validity at creation time."""

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Self


@dataclass(frozen=True, order=True)
class Month:
    """A calendar month."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be 1..12, got {self.month}")
        if not 1 <= self.year <= 9999:
            raise ValueError(f"Year out of range: {self.year}")

    @classmethod
    def from_string(cls, value: str) -> Self:
        """Parse ``YYYY-MM``."""
        year_part, _, month_part = value.partition("-")
        return cls(year=int(year_part), month=int(month_part))

    @classmethod
    def of(cls, day: date) -> Self:
        return cls(year=day.year, month=day.month)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, monthrange(self.year, self.month)[1])

    def days(self) -> Iterator[date]:
        current = self.first_day
        last = self.last_day
        while current <= last:
            yield current
            current += timedelta(days=1)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class MonthRange:
    """Inclusive range of months; open ends are unbounded."""

    start: Month | None = None
    end: Month | None = None

    def __post_init__(self) -> None:
        if self.start and self.end and self.start > self.end:
            raise ValueError("Month range start must not be after its end")

    @classmethod
    def from_strings(cls, start: str | None, end: str | None) -> Self:
        return cls(
            start=Month.from_string(start) if start else None,
            end=Month.from_string(end) if end else None,
        )

    def __contains__(self, month: object) -> bool:
        if not isinstance(month, Month):
            return False
        if self.start and month < self.start:
            return False
        if self.end and month > self.end:
            return False
        return True
