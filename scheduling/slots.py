"""Daily publish-slot allocation in a fixed reference time zone."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
import re
from typing import List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from utils.exceptions import ConfigurationError


_SLOT_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_slot(text: str) -> Tuple[int, int]:
    """Parse ``HH:MM`` (24-hour) into ``(hour, minute)``."""
    raw = str(text or "").strip()
    match = _SLOT_RE.match(raw)
    if not match:
        raise ConfigurationError(f"invalid schedule slot {text!r}, expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ConfigurationError(f"invalid schedule slot {text!r}, out of range")
    return hour, minute


class SlotAllocator:
    """Maps a committed publish instant to the next configured slot instant."""

    def __init__(self, slots: Sequence[str], tz: str = "Asia/Taipei") -> None:
        if not slots:
            raise ConfigurationError("schedule slot list is empty")

        parsed = [parse_slot(item) for item in slots]
        for prev, cur in zip(parsed, parsed[1:]):
            if cur <= prev:
                raise ConfigurationError(
                    "schedule slots must be strictly ascending",
                    {"slots": list(slots)},
                )

        try:
            self.tz = ZoneInfo(str(tz))
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError(f"unknown time zone {tz!r}") from exc

        self._slots: List[time] = [time(hour=h, minute=m) for h, m in parsed]

    @property
    def slots(self) -> List[str]:
        return [slot.strftime("%H:%M") for slot in self._slots]

    def next_slot(self, last_committed: Optional[datetime], *, now: Optional[datetime] = None) -> datetime:
        """Return the first slot instant strictly after ``last_committed``.

        ``None`` means no committed instant yet; the current time is used as
        the baseline instead. Naive datetimes are read as UTC.
        """
        if last_committed is None:
            baseline = now or datetime.now(timezone.utc)
        else:
            baseline = last_committed
        if baseline.tzinfo is None:
            baseline = baseline.replace(tzinfo=timezone.utc)
        local = baseline.astimezone(self.tz)

        day = local.date()
        for slot in self._slots:
            candidate = self._at(day, slot)
            if candidate > local:
                return candidate
        return self._at(day + timedelta(days=1), self._slots[0])

    def first_slot_on(self, day: date) -> datetime:
        """First configured slot on a calendar day in the reference zone."""
        return self._at(day, self._slots[0])

    def start_slot(
        self,
        baseline: Optional[datetime],
        start_date: Optional[date] = None,
        *,
        now: Optional[datetime] = None,
    ) -> datetime:
        """Starting clock for a batch run.

        With an operator start date the run begins at that date's first slot,
        unless the baseline already reaches it.
        """
        if start_date is None:
            return self.next_slot(baseline, now=now)
        candidate = self.first_slot_on(start_date)
        if baseline is not None and baseline >= candidate:
            return self.next_slot(baseline, now=now)
        return candidate

    def localize(self, value: datetime) -> datetime:
        """Attach the reference zone to naive operator input, convert aware input."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def _at(self, day: date, slot: time) -> datetime:
        return datetime(day.year, day.month, day.day, slot.hour, slot.minute, tzinfo=self.tz)
