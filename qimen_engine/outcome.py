"""Weighted roll-up of pattern magnitudes and subject favorability."""

from __future__ import annotations

from typing import Any, Mapping

DEFAULT_OUTCOME_PROFILE: dict[str, Any] = {
    "favorability_weight": 1.0,
    "pattern_weight": 0.8,
    "pattern_cap": 25.0,
    "floor": 15.0,
    "ceiling": 85.0,
    # (min probability, bucket id, window); first match wins.
    "timing_buckets": [
        [70, "near", "1-3 months"],
        [58, "mid_near", "3-6 months"],
        [45, "mid", "6-12 months"],
        [32, "mid_far", "1-2 years"],
        [0, "far", "2+ years"],
    ],
    "assessment_levels": [
        [80, "very_favorable"],
        [70, "favorable"],
        [60, "moderately_favorable"],
        [50, "balanced"],
        [40, "challenging"],
        [30, "difficult"],
        [0, "very_difficult"],
    ],
}


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def timing_bucket(probability: float, buckets: list[Any]) -> dict[str, str]:
    for threshold, bucket_id, window in buckets:
        if probability >= threshold:
            return {"id": bucket_id, "window": window}
    _, bucket_id, window = buckets[-1]
    return {"id": bucket_id, "window": window}


def assessment_level(probability: float, levels: list[Any]) -> str:
    for threshold, level in levels:
        if probability >= threshold:
            return level
    return levels[-1][1]


def synthesize_outcome(
    patterns: list[dict[str, Any]],
    strengths: Mapping[str, Mapping[str, Any]],
    favorability: float,
    profile: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    profile = DEFAULT_OUTCOME_PROFILE if profile is None else profile

    pattern_sum = sum(int(m["magnitude"]) for m in patterns)
    cap = float(profile["pattern_cap"])
    pattern_shift = _clamp(pattern_sum * float(profile["pattern_weight"]), -cap, cap)
    raw = favorability * float(profile["favorability_weight"]) + pattern_shift
    probability = int(round(_clamp(raw, float(profile["floor"]), float(profile["ceiling"]))))

    factors = [f"favorability:{favorability:.2f}"]
    for name, strength in strengths.items():
        if strength.get("found"):
            factors.append(f"subject:{name}:{int(strength['total']):+d}")
        else:
            factors.append(f"subject:{name}:not_found")
    for match in patterns:
        if match["magnitude"]:
            factors.append(f"pattern:{match['name']}:{int(match['magnitude']):+d}")

    return {
        "probability": probability,
        "favorability": round(favorability, 2),
        "pattern_sum": pattern_sum,
        "pattern_shift": round(pattern_shift, 2),
        "assessment": assessment_level(probability, profile["assessment_levels"]),
        "timing": timing_bucket(probability, profile["timing_buckets"]),
        "factors": factors,
    }
