"""Static public holiday table (Indonesia plus major international dates)."""

from __future__ import annotations

import datetime
from typing import NamedTuple


class Holiday(NamedTuple):
    date: datetime.date
    name: str
    type: str = "public"


_HOLIDAYS: dict[int, tuple[tuple[str, str], ...]] = {
    2025: (
        ("2025-01-01", "New Year's Day"),
        ("2025-01-27", "Isra Mi'raj"),
        ("2025-01-29", "Chinese New Year"),
        ("2025-03-29", "Nyepi"),
        ("2025-03-31", "Eid al-Fitr"),
        ("2025-04-01", "Eid al-Fitr Holiday"),
        ("2025-04-18", "Good Friday"),
        ("2025-05-01", "Labour Day"),
        ("2025-05-12", "Vesak Day"),
        ("2025-05-29", "Ascension Day"),
        ("2025-06-01", "Pancasila Day"),
        ("2025-06-06", "Eid al-Adha"),
        ("2025-06-27", "Islamic New Year"),
        ("2025-08-17", "Independence Day"),
        ("2025-09-05", "Prophet's Birthday"),
        ("2025-12-25", "Christmas Day"),
    ),
    2026: (
        ("2026-01-01", "New Year's Day"),
        ("2026-01-17", "Isra Mi'raj"),
        ("2026-02-17", "Chinese New Year"),
        ("2026-03-20", "Eid al-Fitr"),
        ("2026-03-22", "Eid al-Fitr Holiday"),
        ("2026-04-03", "Good Friday"),
        ("2026-05-01", "Labour Day"),
        ("2026-05-14", "Ascension Day"),
        ("2026-05-27", "Eid al-Adha"),
        ("2026-06-01", "Pancasila Day"),
        ("2026-06-16", "Islamic New Year"),
        ("2026-08-17", "Independence Day"),
        ("2026-08-25", "Prophet's Birthday"),
        ("2026-12-25", "Christmas Day"),
    ),
}


def get_holidays(year: int) -> list[Holiday]:
    """Holidays for ``year``; years not in the table have none."""
    return [
        Holiday(datetime.date.fromisoformat(day), name)
        for day, name in _HOLIDAYS.get(year, ())
    ]
