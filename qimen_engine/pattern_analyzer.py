"""Rule-table interpreter that scans a plate for named combinations."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from qimen_engine import tables
from qimen_engine.pattern_rules import MAGNITUDE_LIMIT, PATTERN_RULES, VIEW_FIELDS
from qimen_engine.plate_builder import Plate

logger = logging.getLogger("pattern_analyzer")


def palace_views(plate: Plate) -> list[dict[str, Any]]:
    """Flatten each palace into the fields rules may test."""
    views: list[dict[str, Any]] = []
    for heaven in plate.heaven:
        views.append(
            {
                "palace": heaven.index,
                "heaven_stem": heaven.stem,
                "ground_stem": plate.ground[heaven.index].stem,
                "star": heaven.star,
                "door": heaven.door,
                "god": heaven.god,
                "displacement": heaven.displacement,
                "zhifu": plate.hour_palace is not None and heaven.index == plate.hour_palace,
            }
        )
    return views


def _view_matches(view: Mapping[str, Any], when: Mapping[str, Iterable[Any]]) -> bool:
    return all(view.get(field) in allowed for field, allowed in when.items())


def polarity_for(magnitude: int) -> str:
    if magnitude > 0:
        return "auspicious"
    if magnitude < 0:
        return "inauspicious"
    return "neutral"


def validate_rule(rule: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize one rule entry or raise ValueError."""
    rule_id = rule.get("id")
    if not isinstance(rule_id, str) or not rule_id:
        raise ValueError(f"rule id missing: {rule!r}")
    magnitude = rule.get("magnitude")
    if not isinstance(magnitude, int) or isinstance(magnitude, bool) or abs(magnitude) > MAGNITUDE_LIMIT:
        raise ValueError(f"rule {rule_id}: magnitude must be an integer within ±{MAGNITUDE_LIMIT}")
    scope = rule.get("scope", "palace")
    if scope not in ("palace", "plate"):
        raise ValueError(f"rule {rule_id}: unknown scope {scope!r}")
    when = rule.get("when")
    if not isinstance(when, Mapping) or not when:
        raise ValueError(f"rule {rule_id}: 'when' must be a non-empty mapping")
    unknown = set(when) - set(VIEW_FIELDS)
    if unknown:
        raise ValueError(f"rule {rule_id}: unknown fields {sorted(unknown)}")
    for field, values in when.items():
        if not isinstance(values, (list, tuple)):
            raise ValueError(f"rule {rule_id}: '{field}' must be a list of allowed values")

    normalized = {
        "id": rule_id,
        "name": str(rule.get("name") or rule_id),
        "scope": scope,
        "magnitude": magnitude,
        "when": {field: tuple(values) for field, values in when.items()},
    }
    if scope == "plate":
        min_count = rule.get("min_count", 1)
        if not isinstance(min_count, int) or min_count < 1:
            raise ValueError(f"rule {rule_id}: min_count must be a positive integer")
        normalized["min_count"] = min_count
    return normalized


def _match(rule: Mapping[str, Any], palaces: list[int]) -> dict[str, Any]:
    return {
        "rule_id": rule["id"],
        "name": rule["name"],
        "palaces": palaces,
        "palace_names": [tables.palace_name(p) for p in palaces],
        "polarity": polarity_for(rule["magnitude"]),
        "magnitude": rule["magnitude"],
    }


def detect_patterns(plate: Plate, rules: Iterable[Mapping[str, Any]] | None = None) -> list[dict[str, Any]]:
    """Evaluate every rule against the plate.

    Matches are independent; ordering is |magnitude| desc, rule id asc,
    then first palace.
    """
    rules = PATTERN_RULES if rules is None else rules
    views = palace_views(plate)
    matches: list[dict[str, Any]] = []

    for rule in rules:
        hits = [view["palace"] for view in views if _view_matches(view, rule["when"])]
        if not hits:
            continue
        if rule.get("scope", "palace") == "plate":
            if len(hits) >= rule.get("min_count", 1):
                matches.append(_match(rule, hits))
        else:
            for palace in hits:
                matches.append(_match(rule, [palace]))

    matches.sort(key=lambda m: (-abs(m["magnitude"]), m["rule_id"], m["palaces"][0]))
    logger.debug("Detected %s pattern matches", len(matches))
    return matches


def summarize_patterns(matches: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "count": len(matches),
        "auspicious": sum(1 for m in matches if m["polarity"] == "auspicious"),
        "inauspicious": sum(1 for m in matches if m["polarity"] == "inauspicious"),
        "net_magnitude": sum(m["magnitude"] for m in matches),
    }
