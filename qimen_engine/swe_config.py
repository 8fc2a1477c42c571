"""Swiss Ephemeris initialization and backend diagnostics."""

from __future__ import annotations

import logging
import os
from typing import Any

import swisseph as swe


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _probe_ephemeris_backend(log: logging.Logger) -> dict[str, Any]:
    """Check whether solar positions come from Swiss Ephemeris files or the Moshier fallback."""
    status: dict[str, Any] = {
        "ephemeris_backend": "unknown",
        "ephemeris_verified": False,
        "ephemeris_retflag": None,
    }
    try:
        if not (hasattr(swe, "calc_ut") and hasattr(swe, "SUN")):
            status["probe_error"] = "calc_ut or SUN not available"
            return status

        jd = swe.julday(2024, 3, 20, 0.0)
        flags = int(getattr(swe, "FLG_SWIEPH", 0))
        _, retflag = swe.calc_ut(jd, swe.SUN, flags)
        status["ephemeris_retflag"] = int(retflag)

        uses_moshier = bool(getattr(swe, "FLG_MOSEPH", 0) and (retflag & swe.FLG_MOSEPH))
        uses_swieph = bool(getattr(swe, "FLG_SWIEPH", 0) and (retflag & swe.FLG_SWIEPH))

        if uses_swieph and not uses_moshier:
            status["ephemeris_backend"] = "swieph"
            status["ephemeris_verified"] = True
        elif uses_moshier:
            status["ephemeris_backend"] = "moshier"
        return status
    except Exception as exc:
        log.warning("Failed to probe ephemeris backend: %s", exc)
        status["probe_error"] = str(exc)
        return status


def initialize_swe_context(logger: logging.Logger | None = None) -> dict[str, Any]:
    """Point Swiss Ephemeris at its data files and report which backend answers.

    Solar-term reference crossings are tropical, so no sidereal mode is set.
    Raises RuntimeError only when SWE_REQUIRE_SWIEPH is set and the data files
    are not in use.
    """
    log = logger or logging.getLogger("swe_config")
    ephe_path = os.getenv("SWE_EPHE_PATH", "/usr/share/libswe/ephe")
    require_swieph = _is_truthy(os.getenv("SWE_REQUIRE_SWIEPH", "0"))
    status: dict[str, Any] = {
        "ephemeris_path": ephe_path,
        "zodiac": "tropical",
        "ephemeris_backend": "unknown",
        "ephemeris_verified": False,
        "ephemeris_retflag": None,
        "require_swieph": require_swieph,
        "solcross_available": hasattr(swe, "solcross_ut"),
    }

    try:
        if hasattr(swe, "set_ephe_path"):
            swe.set_ephe_path(ephe_path)
    except Exception as exc:
        log.warning("Failed to set ephemeris path: %s", exc)
        status["ephe_path_error"] = str(exc)

    status.update(_probe_ephemeris_backend(log))

    if require_swieph and not status.get("ephemeris_verified", False):
        raise RuntimeError(
            "Swiss Ephemeris data files are not available. "
            f"Configured path: {ephe_path}. Backend: {status.get('ephemeris_backend')}."
        )

    return status
