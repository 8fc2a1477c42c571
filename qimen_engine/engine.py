"""Qimen pipeline orchestration.

moment -> pillars + solar term -> cycle -> plate -> patterns -> subjects -> outcome.
Pure for an explicitly passed moment; never reads the wall clock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from qimen_engine.context import EngineContext, get_engine_context
from qimen_engine.epoch import Cycle, resolve_cycle
from qimen_engine.errors import ApproximationWarning, InputValidationError
from qimen_engine.outcome import synthesize_outcome
from qimen_engine.pattern_analyzer import detect_patterns, summarize_patterns
from qimen_engine.plate_builder import Plate, build_plate
from qimen_engine.sexagenary import CalendarMoment, FourPillars, compute_pillars, julian_day_ut, validate_moment
from qimen_engine.solar_terms import SolarTermState, resolve_solar_term_state
from qimen_engine.subject_evaluator import evaluate_subjects, normalize_profile

ENGINE_VERSION = "1.0.0"
ENGINE_SIGNATURE = "QIMEN_CORE_V1"
MAX_QUERY_LENGTH = 200

logger = logging.getLogger("qimen_engine")


@dataclass(frozen=True)
class Derivation:
    moment: CalendarMoment
    julian_day: float
    pillars: FourPillars
    solar_term: SolarTermState
    cycle: Cycle
    plate: Plate
    patterns: list[dict[str, Any]]
    warnings: tuple[ApproximationWarning, ...]


def validate_query(query: Any) -> str:
    if not isinstance(query, str) or not query.strip():
        raise InputValidationError("A non-empty question is required.")
    query = query.strip()
    if len(query) > MAX_QUERY_LENGTH:
        raise InputValidationError(f"Question must be at most {MAX_QUERY_LENGTH} characters.")
    return query


def derive_plate(moment: CalendarMoment, context: EngineContext | None = None) -> Derivation:
    context = context or get_engine_context()
    validate_moment(moment)

    jd = julian_day_ut(moment)
    pillars = compute_pillars(moment, jd, rollover_hour=context.day_rollover_hour)
    state = resolve_solar_term_state(jd)
    cycle = resolve_cycle(state.term_index, state.yuan, context.ju_table, context.strict_invariants)
    plate = build_plate(cycle, pillars.hour, context.layout)
    patterns = detect_patterns(plate, context.pattern_rules)

    warnings: list[ApproximationWarning] = []
    if state.approximate:
        warnings.append(ApproximationWarning("solar_term_not_converged", f"{state.name} crossing is a best estimate"))
    if pillars.approximate:
        warnings.append(ApproximationWarning("pillar_boundary_approximate", "year/month boundary crossing is a best estimate"))
    if cycle.degraded:
        warnings.append(ApproximationWarning("cycle_fallback", f"ju fell back to {cycle.ju}"))
    warnings.extend(plate.warnings)
    for warning in warnings:
        logger.warning("Degraded result for %s: %s", moment.to_dict(), warning)

    return Derivation(
        moment=moment,
        julian_day=jd,
        pillars=pillars,
        solar_term=state,
        cycle=cycle,
        plate=plate,
        patterns=patterns,
        warnings=tuple(warnings),
    )


def _engine_block() -> dict[str, str]:
    return {"version": ENGINE_VERSION, "signature": ENGINE_SIGNATURE}


def _plate_payload(derived: Derivation) -> dict[str, Any]:
    return {
        "moment": derived.moment.to_dict(),
        "julian_day": round(derived.julian_day, 6),
        "calendar": derived.pillars.to_dict(),
        "solar_term": derived.solar_term.to_dict(),
        "cycle": derived.cycle.to_dict(),
        "plate": derived.plate.to_dict(),
        "patterns": derived.patterns,
        "pattern_summary": summarize_patterns(derived.patterns),
        "degraded": bool(derived.warnings) or derived.plate.degraded,
        "warnings": [w.as_record() for w in derived.warnings],
        "engine": _engine_block(),
    }


def build_qimen_plate(moment: CalendarMoment, context: EngineContext | None = None) -> dict[str, Any]:
    """Plate, term and pattern payload for one moment."""
    return _plate_payload(derive_plate(moment, context))


def build_qimen_reading(
    moment: CalendarMoment,
    query: str,
    profile: Mapping[str, Any] | None = None,
    context: EngineContext | None = None,
) -> dict[str, Any]:
    """Full reading: plate, patterns, subject strengths and outcome."""
    context = context or get_engine_context()
    query = validate_query(query)
    validate_moment(moment)
    normalized_profile = normalize_profile(profile)

    derived = derive_plate(moment, context)
    evaluation = evaluate_subjects(
        query,
        derived.plate,
        derived.pillars,
        derived.solar_term.term_index,
        normalized_profile,
        scores=context.strength_scores,
        keywords=context.intent_keywords,
        registry=context.subject_registry,
    )
    outcome = synthesize_outcome(
        derived.patterns,
        evaluation["strengths"],
        evaluation["favorability"],
        context.outcome_profile,
    )

    payload = _plate_payload(derived)
    payload.update(
        {
            "query": query,
            "profile": {
                "gender": normalized_profile["gender"],
                "birth_date": normalized_profile["birth_date"].isoformat() if normalized_profile["birth_date"] else None,
            },
            "intent": evaluation["intent"],
            "season": evaluation["season"],
            "subjects": evaluation["strengths"],
            "favorability": evaluation["favorability"],
            "outcome": outcome,
        }
    )
    return payload
