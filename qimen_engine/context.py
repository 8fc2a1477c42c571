"""Read-only engine context built once per process.

All lookup tables, the pattern rule table and the scoring profile are frozen
into mappings/tuples here and handed to each pipeline step explicitly.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from qimen_engine.epoch import JU_TABLE
from qimen_engine.errors import InvariantViolation
from qimen_engine.outcome import DEFAULT_OUTCOME_PROFILE
from qimen_engine.pattern_analyzer import validate_rule
from qimen_engine.pattern_rules import PATTERN_RULES
from qimen_engine.plate_builder import DEFAULT_LAYOUT
from qimen_engine.sexagenary import DAY_ROLLOVER_HOURS, DEFAULT_DAY_ROLLOVER_HOUR
from qimen_engine.subject_evaluator import CATEGORY_SUBJECTS, DEFAULT_STRENGTH_SCORES, INTENT_KEYWORDS

logger = logging.getLogger("engine_context")

DEFAULT_SCORING_PROFILE: dict[str, Any] = {
    "strength": DEFAULT_STRENGTH_SCORES,
    "outcome": DEFAULT_OUTCOME_PROFILE,
    "day_rollover_hour": DEFAULT_DAY_ROLLOVER_HOUR,
    "extra_rules": [],
}


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _load_json_config(path: Path, fallback: dict[str, Any], config_name: str) -> dict[str, Any]:
    """Load a JSON config file, returning `fallback` on any validation or IO error."""
    try:
        if not path.exists():
            logger.warning("%s missing at %s. Using defaults.", config_name, path)
            return dict(fallback)
        loaded = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(loaded, dict):
            raise ValueError(f"{config_name} must be a JSON object")
        return loaded
    except Exception as exc:
        logger.warning("Failed loading %s (%s). Using defaults.", config_name, exc)
        return dict(fallback)


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _valid_strength_tables(candidate: Any) -> bool:
    if not isinstance(candidate, Mapping):
        return False
    for section, defaults in DEFAULT_STRENGTH_SCORES.items():
        table = candidate.get(section)
        if not isinstance(table, Mapping) or set(table) != set(defaults):
            return False
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in table.values()):
            return False
    return True


def _valid_outcome_profile(candidate: Any) -> bool:
    if not isinstance(candidate, Mapping):
        return False
    for key in ("favorability_weight", "pattern_weight", "pattern_cap", "floor", "ceiling"):
        if not _is_number(candidate.get(key)):
            return False
    if not 0 <= candidate["floor"] <= candidate["ceiling"] <= 100:
        return False
    for key, width in (("timing_buckets", 3), ("assessment_levels", 2)):
        rows = candidate.get(key)
        if not isinstance(rows, list) or not rows:
            return False
        if not all(isinstance(row, list) and len(row) == width for row in rows):
            return False
        thresholds = [row[0] for row in rows]
        if not all(_is_number(t) for t in thresholds):
            return False
        if thresholds != sorted(thresholds, reverse=True):
            return False
        if not all(isinstance(label, str) for row in rows for label in row[1:]):
            return False
    return True


def merge_scoring_profile(loaded: Mapping[str, Any]) -> dict[str, Any]:
    """Take valid sections from `loaded`, defaults for the rest."""
    merged = dict(DEFAULT_SCORING_PROFILE)

    strength = loaded.get("strength")
    if strength is not None:
        if _valid_strength_tables(strength):
            merged["strength"] = strength
        else:
            logger.warning("Ignoring invalid strength section in scoring profile.")

    outcome = loaded.get("outcome")
    if outcome is not None:
        if _valid_outcome_profile(outcome):
            merged["outcome"] = outcome
        else:
            logger.warning("Ignoring invalid outcome section in scoring profile.")

    rollover = loaded.get("day_rollover_hour")
    if rollover is not None:
        if rollover in DAY_ROLLOVER_HOURS and not isinstance(rollover, bool):
            merged["day_rollover_hour"] = rollover
        else:
            logger.warning("Ignoring invalid day_rollover_hour=%r in scoring profile.", rollover)

    extra_rules = loaded.get("extra_rules")
    if isinstance(extra_rules, list):
        merged["extra_rules"] = extra_rules
    return merged


@dataclass(frozen=True)
class EngineContext:
    ju_table: Mapping[str, Any]
    layout: Mapping[str, Any]
    pattern_rules: tuple[Mapping[str, Any], ...]
    intent_keywords: tuple[tuple[str, tuple[str, ...]], ...]
    subject_registry: Mapping[str, Any]
    strength_scores: Mapping[str, Mapping[str, int]]
    outcome_profile: Mapping[str, Any]
    day_rollover_hour: int
    strict_invariants: bool
    profile_source: str


def _build_rules(raw_rules: list[Any], strict: bool) -> tuple[Mapping[str, Any], ...]:
    rules: list[dict[str, Any]] = []
    seen: set[str] = set()
    for raw in raw_rules:
        try:
            rule = validate_rule(raw)
            if rule["id"] in seen:
                raise ValueError(f"duplicate rule id {rule['id']}")
        except (ValueError, TypeError, AttributeError) as exc:
            if strict:
                raise InvariantViolation(f"invalid pattern rule: {exc}") from exc
            logger.warning("Skipping pattern rule: %s", exc)
            continue
        seen.add(rule["id"])
        rules.append(rule)
    return _freeze(rules)


def build_engine_context(
    profile_path: str | Path | None = None,
    strict: bool | None = None,
) -> EngineContext:
    """Assemble the immutable context from built-in tables and optional config."""
    if strict is None:
        strict = _is_truthy(os.getenv("QIMEN_STRICT_INVARIANTS", "0"))
    if profile_path is None:
        profile_path = os.getenv("QIMEN_SCORING_PROFILE") or None

    if profile_path:
        loaded = _load_json_config(Path(profile_path), DEFAULT_SCORING_PROFILE, "scoring_profile")
        profile = merge_scoring_profile(loaded)
        source = str(profile_path)
    else:
        profile = dict(DEFAULT_SCORING_PROFILE)
        source = "builtin"

    rules = _build_rules(list(PATTERN_RULES) + list(profile.get("extra_rules") or []), strict)

    return EngineContext(
        ju_table=_freeze(JU_TABLE),
        layout=_freeze(DEFAULT_LAYOUT),
        pattern_rules=rules,
        intent_keywords=_freeze(INTENT_KEYWORDS),
        subject_registry=_freeze(CATEGORY_SUBJECTS),
        strength_scores=_freeze(profile["strength"]),
        outcome_profile=_freeze(profile["outcome"]),
        day_rollover_hour=int(profile["day_rollover_hour"]),
        strict_invariants=bool(strict),
        profile_source=source,
    )


@lru_cache(maxsize=1)
def get_engine_context() -> EngineContext:
    return build_engine_context()
