"""Civil moment -> sexagenary (stem/branch) pillars.

Year and day pillars are modular counts against fixed epochs (1984 = 甲子 year,
JDN + 49 for days). The month pillar is reported both as the naive civil-month
value and as the value resolved against the sectional solar-term crossing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

import swisseph as swe

from qimen_engine.errors import InputValidationError
from qimen_engine.solar_terms import SOLAR_TERM_NAMES, jd_to_utc_iso, solve_term_crossing
from qimen_engine.tables import BRANCHES, STEMS, XUN_INSTRUMENTS, XUN_NAMES

logger = logging.getLogger("sexagenary")

DEFAULT_UTC_OFFSET = 8.0
SUPPORTED_YEAR_RANGE = (1800, 2200)
YEAR_EPOCH = 1984
# 丙寅, the 寅 month of the 1984 甲子 year.
MONTH_EPOCH_INDEX = 2
DAY_JDN_OFFSET = 49
DEFAULT_DAY_ROLLOVER_HOUR = 23
# 23 starts the day at the 子 hour; 24 keeps the civil midnight.
DAY_ROLLOVER_HOURS = (23, 24)


@dataclass(frozen=True)
class CalendarMoment:
    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0
    second: float = 0.0
    utc_offset: float = DEFAULT_UTC_OFFSET
    longitude: float | None = None

    @property
    def hour_fraction(self) -> float:
        return self.hour + self.minute / 60.0 + self.second / 3600.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "day": self.day,
            "hour": self.hour,
            "minute": self.minute,
            "second": self.second,
            "utc_offset": self.utc_offset,
            "longitude": self.longitude,
        }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_moment(moment: Any) -> CalendarMoment:
    """Raise InputValidationError for anything that is not a usable moment."""
    if not isinstance(moment, CalendarMoment):
        raise InputValidationError("A CalendarMoment is required.")

    for field in ("year", "month", "day", "hour", "minute"):
        if not _is_int(getattr(moment, field)):
            raise InputValidationError(f"{field} must be an integer.")
    if not _is_number(moment.second) or not 0 <= moment.second < 60:
        raise InputValidationError("second must be within [0, 60).")
    if not _is_number(moment.utc_offset) or not -14.0 <= moment.utc_offset <= 14.0:
        raise InputValidationError("utc_offset must be within [-14, 14] hours.")
    if moment.longitude is not None and (
        not _is_number(moment.longitude) or not -180.0 <= moment.longitude <= 180.0
    ):
        raise InputValidationError("longitude must be within [-180, 180].")

    low, high = SUPPORTED_YEAR_RANGE
    if not low <= moment.year <= high:
        raise InputValidationError(f"year must be within [{low}, {high}].")
    try:
        datetime(moment.year, moment.month, moment.day, moment.hour, moment.minute)
    except ValueError as exc:
        raise InputValidationError(f"Invalid civil date-time: {exc}") from exc
    return moment


def julian_day_ut(moment: CalendarMoment) -> float:
    """Convert the local civil moment into a UT Julian day."""
    return swe.julday(moment.year, moment.month, moment.day, moment.hour_fraction - moment.utc_offset)


def lmt_correction_minutes(longitude: float | None, utc_offset: float) -> float:
    """Minutes to add to zone time for local mean time at `longitude`."""
    if longitude is None:
        return 0.0
    return (float(longitude) - 15.0 * float(utc_offset)) * 4.0


def local_civil_datetime(moment: CalendarMoment) -> datetime:
    base = datetime(moment.year, moment.month, moment.day, moment.hour, moment.minute) + timedelta(
        seconds=float(moment.second)
    )
    return base + timedelta(minutes=lmt_correction_minutes(moment.longitude, moment.utc_offset))


@dataclass(frozen=True)
class SexagenaryLabel:
    stem: int
    branch: int

    def __post_init__(self) -> None:
        if not (0 <= self.stem < 10 and 0 <= self.branch < 12):
            raise ValueError(f"stem/branch out of range: {self.stem}, {self.branch}")
        if self.stem % 2 != self.branch % 2:
            raise ValueError(f"stem {self.stem} cannot pair with branch {self.branch}")

    @classmethod
    def from_cycle_index(cls, index: int) -> "SexagenaryLabel":
        index %= 60
        return cls(stem=index % 10, branch=index % 12)

    @property
    def cycle_index(self) -> int:
        return (6 * self.stem - 5 * self.branch) % 60

    @property
    def stem_name(self) -> str:
        return STEMS[self.stem]

    @property
    def branch_name(self) -> str:
        return BRANCHES[self.branch]

    @property
    def name(self) -> str:
        return self.stem_name + self.branch_name

    @property
    def xun_index(self) -> int:
        return self.cycle_index // 10

    @property
    def xun_instrument(self) -> str:
        return XUN_INSTRUMENTS[self.xun_index]

    def next(self) -> "SexagenaryLabel":
        return SexagenaryLabel.from_cycle_index(self.cycle_index + 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stem": self.stem,
            "branch": self.branch,
            "name": self.name,
            "cycle_index": self.cycle_index,
            "xun": XUN_NAMES[self.xun_index],
            "xun_instrument": self.xun_instrument,
        }


def year_label(solar_year: int) -> SexagenaryLabel:
    return SexagenaryLabel.from_cycle_index(solar_year - YEAR_EPOCH)


def year_label_for_date(civil_date: date) -> SexagenaryLabel:
    """Year pillar of a calendar date (noon UT), switching at 立春."""
    jd = swe.julday(civil_date.year, civil_date.month, civil_date.day, 12.0)
    lichun = solve_term_crossing(0, civil_date.year)
    return year_label(civil_date.year if jd >= lichun.jd else civil_date.year - 1)


def month_label(solar_year: int, branch: int) -> SexagenaryLabel:
    """Continuous month count from 丙寅 1984; equivalent to the Five Tigers rule."""
    months = (solar_year - YEAR_EPOCH) * 12 + (branch - 2) % 12
    return SexagenaryLabel.from_cycle_index(MONTH_EPOCH_INDEX + months)


def day_label(civil_date: date) -> SexagenaryLabel:
    jdn = int(round(swe.julday(civil_date.year, civil_date.month, civil_date.day, 12.0)))
    return SexagenaryLabel.from_cycle_index(jdn + DAY_JDN_OFFSET)


def hour_branch_for(hour: int) -> int:
    return ((hour + 1) // 2) % 12


def hour_label(day: SexagenaryLabel, hour: int) -> SexagenaryLabel:
    """Five Rats rule: 子 hour stem follows the day stem."""
    branch = hour_branch_for(hour)
    return SexagenaryLabel(stem=(day.stem * 2 + branch) % 10, branch=branch)


@dataclass(frozen=True)
class MonthPillar:
    naive: SexagenaryLabel
    after_term: bool
    resolved: SexagenaryLabel
    jie_term_index: int
    jie_crossing_jd: float

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.resolved.to_dict(),
            "naive": self.naive.to_dict(),
            "after_term": self.after_term,
            "jie_term": SOLAR_TERM_NAMES[self.jie_term_index],
            "jie_crossing_utc": jd_to_utc_iso(self.jie_crossing_jd),
        }


@dataclass(frozen=True)
class FourPillars:
    year: SexagenaryLabel
    civil_year: SexagenaryLabel
    month: MonthPillar
    day: SexagenaryLabel
    hour: SexagenaryLabel
    local_time: str
    lmt_minutes: float
    approximate: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": {**self.year.to_dict(), "civil_year": self.civil_year.to_dict()},
            "month": self.month.to_dict(),
            "day": self.day.to_dict(),
            "hour": self.hour.to_dict(),
            "local_time": self.local_time,
            "lmt_minutes": round(self.lmt_minutes, 2),
            "approximate": self.approximate,
        }


def jie_term_for_month(month: int) -> int:
    """Sectional term that opens a new solar month inside civil `month`."""
    return ((month - 2) % 12) * 2


def resolve_month_pillar(moment: CalendarMoment, jd_ut: float) -> tuple[MonthPillar, bool]:
    branch = (moment.month - 1) % 12
    solar_year = moment.year if moment.month >= 3 else moment.year - 1
    naive = month_label(solar_year, branch)
    jie_index = jie_term_for_month(moment.month)
    jie = solve_term_crossing(jie_index, moment.year)
    after_term = jd_ut >= jie.jd
    pillar = MonthPillar(
        naive=naive,
        after_term=after_term,
        resolved=naive.next() if after_term else naive,
        jie_term_index=jie_index,
        jie_crossing_jd=jie.jd,
    )
    return pillar, jie.approximate


def compute_pillars(
    moment: CalendarMoment,
    jd_ut: float | None = None,
    *,
    rollover_hour: int = DEFAULT_DAY_ROLLOVER_HOUR,
) -> FourPillars:
    """Year/month/day/hour labels for a validated moment."""
    if rollover_hour not in DAY_ROLLOVER_HOURS:
        raise ValueError(f"rollover_hour must be one of {DAY_ROLLOVER_HOURS}, got {rollover_hour!r}")
    if jd_ut is None:
        jd_ut = julian_day_ut(moment)

    lichun = solve_term_crossing(0, moment.year)
    solar_year = moment.year if jd_ut >= lichun.jd else moment.year - 1
    month, month_approximate = resolve_month_pillar(moment, jd_ut)

    local = local_civil_datetime(moment)
    day_date = local.date()
    if local.hour >= rollover_hour:
        day_date += timedelta(days=1)
    day = day_label(day_date)
    hour = hour_label(day, local.hour)

    approximate = lichun.approximate or month_approximate
    if approximate:
        logger.warning("Pillar boundaries for %s use approximate term crossings", moment.to_dict())

    return FourPillars(
        year=year_label(solar_year),
        civil_year=year_label(moment.year),
        month=month,
        day=day,
        hour=hour,
        local_time=local.replace(microsecond=0).isoformat(),
        lmt_minutes=lmt_correction_minutes(moment.longitude, moment.utc_offset),
        approximate=approximate,
    )
