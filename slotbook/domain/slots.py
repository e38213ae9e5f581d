"""
Slot catalogue.

A Slot is a recurring daily window offered on fixed ISO weekdays and
identified by a stable code. The catalogue is built once from settings and is
immutable afterwards.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

import pytz

from ..core.config import CreditPackConfig, Settings, SlotConfig, settings as default_settings
from ..core.exceptions import NotFoundException


@dataclass(frozen=True)
class Slot:
    code: str
    start: time
    end: time
    weekdays: FrozenSet[int]
    credits: int = 1
    label: str = ""

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"Slot {self.code} must start before it ends")
        if self.credits <= 0:
            raise ValueError(f"Slot {self.code} must cost at least one credit")

    def offered_on(self, day: date) -> bool:
        return day.isoweekday() in self.weekdays

    def starts_at(self, day: date, tz: pytz.BaseTzInfo) -> datetime:
        return tz.localize(datetime.combine(day, self.start))

    def ends_at(self, day: date, tz: pytz.BaseTzInfo) -> datetime:
        return tz.localize(datetime.combine(day, self.end))

    @property
    def window(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"

    @classmethod
    def from_config(cls, config: SlotConfig, default_credits: int) -> "Slot":
        return cls(
            code=config.code,
            start=config.start,
            end=config.end,
            weekdays=frozenset(config.weekdays),
            credits=config.credits or default_credits,
            label=config.label,
        )


class SlotCatalog:
    """Ordered, read-only collection of configured slots."""

    def __init__(self, slots: Iterable[Slot]) -> None:
        ordered = sorted(slots, key=lambda s: (s.start, s.code))
        self._slots: Tuple[Slot, ...] = tuple(ordered)
        self._by_code: Dict[str, Slot] = {slot.code: slot for slot in ordered}
        if len(self._by_code) != len(self._slots):
            raise ValueError("Slot codes must be unique")

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "SlotCatalog":
        cfg = config or default_settings
        return cls(Slot.from_config(slot, cfg.credits_per_slot) for slot in cfg.slots)

    def __iter__(self) -> Iterator[Slot]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, code: object) -> bool:
        return code in self._by_code

    def get(self, code: str) -> Optional[Slot]:
        return self._by_code.get(code)

    def require(self, code: str) -> Slot:
        slot = self._by_code.get(code)
        if slot is None:
            raise NotFoundException(
                f"Unknown slot {code}", code="SLOT_NOT_FOUND", details={"slot_code": code}
            )
        return slot

    def slots_for(self, day: date) -> List[Slot]:
        """Slots offered on ``day`` in start-time order."""
        return [slot for slot in self._slots if slot.offered_on(day)]

    def is_operating_day(self, day: date) -> bool:
        return any(slot.offered_on(day) for slot in self._slots)

    def generate_schedule(self, start: date, weeks: int) -> List[Tuple[date, Slot]]:
        """Every (day, slot) pair offered from ``start`` for ``weeks`` weeks."""
        if weeks < 0:
            raise ValueError("weeks must be non-negative")
        schedule: List[Tuple[date, Slot]] = []
        for offset in range(weeks * 7):
            day = start + timedelta(days=offset)
            schedule.extend((day, slot) for slot in self.slots_for(day))
        return schedule

    def occurrences(self, slot_code: str, weekday: int, start: date, end: date) -> List[date]:
        """Days in ``start``..``end`` falling on ISO ``weekday`` on which ``slot_code`` runs."""
        self.require(slot_code)
        if end < start:
            return []
        weeks = (end - start).days // 7 + 1
        return [
            day
            for day, slot in self.generate_schedule(start, weeks)
            if slot.code == slot_code and day.isoweekday() == weekday and day <= end
        ]


@dataclass(frozen=True)
class CreditPack:
    code: str
    name: str
    credits: int
    price_minor: int
    discount_percent: int = 0

    @property
    def unit_price_minor(self) -> int:
        return self.price_minor // self.credits

    @classmethod
    def from_config(cls, config: CreditPackConfig) -> "CreditPack":
        return cls(
            code=config.code,
            name=config.name,
            credits=config.credits,
            price_minor=config.price_minor,
            discount_percent=config.discount_percent,
        )


def credit_packs_from_settings(config: Optional[Settings] = None) -> Dict[str, CreditPack]:
    cfg = config or default_settings
    return {pack.code: CreditPack.from_config(pack) for pack in cfg.credit_packs}
