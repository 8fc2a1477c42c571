"""Solar-term state via iterative refinement of the apparent solar longitude.

The longitude series is a low-order closed form (mean longitude, equation of
center, aberration/nutation term). Swiss Ephemeris is used for calendar
conversion and as an optional reference for the crossing instants.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import swisseph as swe

logger = logging.getLogger("solar_terms")

# Index 0 is 立春 at 315 degrees; each step adds 15 degrees.
SOLAR_TERM_NAMES = (
    "立春", "雨水", "惊蛰", "春分", "清明", "谷雨",
    "立夏", "小满", "芒种", "夏至", "小暑", "大暑",
    "立秋", "处暑", "白露", "秋分", "寒露", "霜降",
    "立冬", "小雪", "大雪", "冬至", "小寒", "大寒",
)
SOLAR_TERM_LONGITUDES = tuple(float((315 + 15 * i) % 360) for i in range(24))

# Historical-average day offsets from Jan 1 00:00 UT of the crossing's civil year.
SEED_DAY_OFFSETS = (
    34, 49, 64, 79, 94, 109,
    125, 140, 156, 171, 187, 203,
    219, 234, 250, 265, 280, 295,
    310, 325, 340, 355, 5, 20,
)

# Civil-calendar order of the terms within one year (小寒 and 大寒 fall in January).
CIVIL_TERM_ORDER = (22, 23) + tuple(range(22))

MAX_ITERATIONS = 10
TOLERANCE_DEG = 1e-4
MEAN_DAILY_MOTION = 0.9856474
YUAN_SPAN_DAYS = 5.0
J2000 = 2451545.0


def _normalize_360(deg: float) -> float:
    return deg % 360.0


def _signed_delta(target: float, current: float) -> float:
    """Shortest signed angle from `current` to `target`, in (-180, 180]."""
    delta = (target - current) % 360.0
    if delta > 180.0:
        delta -= 360.0
    return delta


def _julian_centuries(jd: float) -> float:
    return (jd - J2000) / 36525.0


def apparent_solar_longitude(jd: float) -> float:
    """Apparent geocentric ecliptic longitude of the Sun in degrees."""
    t = _julian_centuries(jd)
    mean_longitude = 280.46646 + 36000.76983 * t + 0.0003032 * t * t
    mean_anomaly = math.radians(357.52911 + 35999.05029 * t - 0.0001537 * t * t)
    center = (
        (1.914602 - 0.004817 * t - 0.000014 * t * t) * math.sin(mean_anomaly)
        + (0.019993 - 0.000101 * t) * math.sin(2 * mean_anomaly)
        + 0.000289 * math.sin(3 * mean_anomaly)
    )
    omega = math.radians(125.04 - 1934.136 * t)
    return _normalize_360(mean_longitude + center - 0.00569 - 0.00478 * math.sin(omega))


def solar_longitude_rate(jd: float) -> float:
    """Instantaneous apparent motion in degrees/day with a first-order eccentricity term."""
    t = _julian_centuries(jd)
    mean_anomaly = math.radians(357.52911 + 35999.05029 * t - 0.0001537 * t * t)
    eccentricity = 0.016708634 - 0.000042037 * t - 0.0000001267 * t * t
    return MEAN_DAILY_MOTION * (1.0 + 2.0 * eccentricity * math.cos(mean_anomaly))


def _check_term_index(term_index: int) -> None:
    if not isinstance(term_index, int) or not 0 <= term_index < 24:
        raise ValueError(f"term index out of range: {term_index!r}")


def seed_julian_day(term_index: int, year: int) -> float:
    _check_term_index(term_index)
    return swe.julday(int(year), 1, 1, 0.0) + SEED_DAY_OFFSETS[term_index]


def jd_to_utc_iso(jd: float) -> str:
    year, month, day, hour = swe.revjul(jd)
    moment = datetime(int(year), int(month), int(day), tzinfo=timezone.utc) + timedelta(hours=float(hour))
    moment = (moment + timedelta(milliseconds=500)).replace(microsecond=0)
    return moment.isoformat().replace("+00:00", "Z")


def jd_civil_year(jd: float) -> int:
    return int(swe.revjul(jd)[0])


@dataclass(frozen=True)
class TermCrossing:
    term_index: int
    jd: float
    iterations: int
    converged: bool
    residual_deg: float | None

    @property
    def approximate(self) -> bool:
        return not self.converged


def solve_term_crossing(
    term_index: int,
    year: int,
    *,
    seed_jd: float | None = None,
    longitude_fn: Callable[[float], float] = apparent_solar_longitude,
    rate_fn: Callable[[float], float] = solar_longitude_rate,
    max_iterations: int = MAX_ITERATIONS,
    tolerance: float = TOLERANCE_DEG,
) -> TermCrossing:
    """Find the UT Julian day at which the Sun reaches the term's longitude.

    `year` is the civil year containing the crossing. Never raises on
    non-convergence: the best estimate comes back with `converged=False`.
    """
    _check_term_index(term_index)
    target = SOLAR_TERM_LONGITUDES[term_index]
    estimate = float(seed_jd) if seed_jd is not None else seed_julian_day(term_index, year)
    iterations = 0
    residual: float | None = None
    converged = False

    while iterations < max_iterations:
        iterations += 1
        residual = _signed_delta(target, longitude_fn(estimate))
        if not math.isfinite(residual):
            residual = None
            break
        if abs(residual) < tolerance:
            converged = True
            break
        rate = rate_fn(estimate)
        if not math.isfinite(rate) or rate <= 0.0:
            break
        estimate += residual / rate

    if not converged:
        logger.warning(
            "Solar term %s (%s) did not converge after %s iterations; residual=%s",
            SOLAR_TERM_NAMES[term_index],
            year,
            iterations,
            residual,
        )
    return TermCrossing(
        term_index=term_index,
        jd=estimate,
        iterations=iterations,
        converged=converged,
        residual_deg=residual,
    )


def _crossing_near(term_index: int, jd: float, **solver_kwargs: Any) -> TermCrossing:
    year = jd_civil_year(jd)
    seed = seed_julian_day(term_index, year)
    if seed - jd > 182.6:
        year -= 1
    elif jd - seed > 182.6:
        year += 1
    return solve_term_crossing(term_index, year, **solver_kwargs)


def yuan_for_days(days_since: float) -> int:
    """Sub-period 1-3: five-day windows after the crossing, the third open-ended."""
    if days_since < 0:
        return 1
    return min(3, int(days_since // YUAN_SPAN_DAYS) + 1)


@dataclass(frozen=True)
class SolarTermState:
    term_index: int
    name: str
    longitude: float
    crossing_jd: float
    crossing_utc: str
    days_since: float
    yuan: int
    iterations: int
    approximate: bool
    next_term_index: int
    next_crossing_jd: float

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["days_since"] = round(self.days_since, 4)
        payload["next_term_name"] = SOLAR_TERM_NAMES[self.next_term_index]
        payload["next_crossing_utc"] = jd_to_utc_iso(self.next_crossing_jd)
        return payload


def resolve_solar_term_state(jd: float, **solver_kwargs: Any) -> SolarTermState:
    """Select the term whose crossing is closest to, but not after, `jd`."""
    longitude_fn = solver_kwargs.get("longitude_fn", apparent_solar_longitude)
    current = longitude_fn(jd)
    if math.isfinite(current):
        term_index = int(_normalize_360(current - SOLAR_TERM_LONGITUDES[0]) // 15.0) % 24
    else:
        term_index = 0

    crossing = _crossing_near(term_index, jd, **solver_kwargs)
    # The estimate can land just after the moment at a boundary; step back once.
    if crossing.jd > jd:
        term_index = (term_index - 1) % 24
        crossing = _crossing_near(term_index, jd, **solver_kwargs)

    next_index = (term_index + 1) % 24
    next_crossing = _crossing_near(next_index, crossing.jd + 15.2, **solver_kwargs)
    days_since = jd - crossing.jd

    return SolarTermState(
        term_index=term_index,
        name=SOLAR_TERM_NAMES[term_index],
        longitude=SOLAR_TERM_LONGITUDES[term_index],
        crossing_jd=crossing.jd,
        crossing_utc=jd_to_utc_iso(crossing.jd),
        days_since=days_since,
        yuan=yuan_for_days(days_since),
        iterations=crossing.iterations,
        approximate=crossing.approximate or next_crossing.approximate,
        next_term_index=next_index,
        next_crossing_jd=next_crossing.jd,
    )


def reference_term_crossing(term_index: int, year: int) -> float | None:
    """Swiss Ephemeris crossing for cross-checking; None when unavailable."""
    _check_term_index(term_index)
    if not hasattr(swe, "solcross_ut"):
        return None
    start = seed_julian_day(term_index, year) - 20.0
    try:
        return float(swe.solcross_ut(SOLAR_TERM_LONGITUDES[term_index], start, 0))
    except Exception as exc:
        logger.warning("Swiss Ephemeris solcross_ut failed for %s %s: %s", SOLAR_TERM_NAMES[term_index], year, exc)
        return None


def list_solar_terms(year: int, reference: bool = False) -> list[dict[str, Any]]:
    """All 24 crossings of a civil year in calendar order."""
    rows: list[dict[str, Any]] = []
    for term_index in CIVIL_TERM_ORDER:
        crossing = solve_term_crossing(term_index, year)
        row: dict[str, Any] = {
            "term_index": term_index,
            "name": SOLAR_TERM_NAMES[term_index],
            "longitude": SOLAR_TERM_LONGITUDES[term_index],
            "jd": round(crossing.jd, 6),
            "utc": jd_to_utc_iso(crossing.jd),
            "iterations": crossing.iterations,
            "approximate": crossing.approximate,
        }
        if reference:
            ref_jd = reference_term_crossing(term_index, year)
            row["reference_utc"] = jd_to_utc_iso(ref_jd) if ref_jd is not None else None
            row["reference_drift_minutes"] = (
                round((crossing.jd - ref_jd) * 1440.0, 2) if ref_jd is not None else None
            )
        rows.append(row)
    return rows
