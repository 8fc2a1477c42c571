"""Query intent, subject resolution and five-phase strength scoring.

Subjects are tagged registry entries (family + symbol). Symbols starting with
"@" are references resolved against the pillars, plate and profile before a
single generic plate lookup runs.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Mapping

from qimen_engine import tables
from qimen_engine.errors import InputValidationError, LookupMiss
from qimen_engine.plate_builder import Plate, hour_stem_marker
from qimen_engine.sexagenary import FourPillars, SexagenaryLabel, year_label_for_date

logger = logging.getLogger("subject_evaluator")

# Checked in order; the first category with a hit wins.
INTENT_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("marriage", ("婚姻", "结婚", "恋爱", "感情", "配偶", "对象",
                  "marriage", "marry", "wedding", "love", "romance", "relationship", "spouse")),
    ("wealth", ("财运", "投资", "生意", "赚钱", "收入", "财富",
                "wealth", "money", "invest", "investment", "finance", "profit", "income", "business")),
    ("health", ("健康", "疾病", "治病", "医院", "身体", "病情",
                "health", "illness", "disease", "sick", "hospital", "surgery", "recovery")),
    ("lawsuit", ("官司", "诉讼", "法律", "纠纷", "争议", "法院",
                 "lawsuit", "legal", "court", "litigation", "dispute")),
    ("career", ("工作", "求职", "面试", "职业", "就业", "跳槽", "升职",
                "career", "job", "work", "interview", "promotion", "employment", "opportunity")),
    ("study", ("学业", "考试", "升学", "读书", "学习",
               "study", "exam", "school", "university", "education")),
    ("travel", ("出行", "旅行", "出差", "旅游", "行程",
                "travel", "trip", "journey", "flight")),
]

DEFAULT_INTENT = "general"

CATEGORY_SUBJECTS: dict[str, list[dict[str, str]]] = {
    "marriage": [
        {"name": "self", "family": "stem", "symbol": "@marriage_self"},
        {"name": "partner", "family": "stem", "symbol": "@partner"},
        {"name": "relationship", "family": "god", "symbol": "六合"},
    ],
    "wealth": [
        {"name": "resource", "family": "door", "symbol": "生门"},
        {"name": "capital", "family": "stem", "symbol": "戊"},
        {"name": "asset", "family": "star", "symbol": "天任"},
        {"name": "opportunity", "family": "door", "symbol": "开门"},
    ],
    "health": [
        {"name": "self", "family": "stem", "symbol": "@day_stem"},
        {"name": "illness", "family": "star", "symbol": "天芮"},
        {"name": "healer", "family": "star", "symbol": "天心"},
        {"name": "vitality", "family": "door", "symbol": "生门"},
    ],
    "lawsuit": [
        {"name": "self", "family": "stem", "symbol": "@day_stem"},
        {"name": "opponent", "family": "stem", "symbol": "@opponent"},
        {"name": "judge", "family": "star", "symbol": "天心"},
        {"name": "ruling", "family": "door", "symbol": "开门"},
    ],
    "career": [
        {"name": "self", "family": "stem", "symbol": "@day_stem"},
        {"name": "competitor", "family": "stem", "symbol": "庚"},
        {"name": "leader", "family": "star", "symbol": "天心"},
        {"name": "position", "family": "door", "symbol": "开门"},
    ],
    "study": [
        {"name": "documents", "family": "stem", "symbol": "丁"},
        {"name": "mentor", "family": "star", "symbol": "天心"},
        {"name": "exam", "family": "door", "symbol": "景门"},
    ],
    "travel": [
        {"name": "route", "family": "god", "symbol": "九天"},
        {"name": "shelter", "family": "god", "symbol": "太阴"},
        {"name": "departure", "family": "door", "symbol": "开门"},
    ],
    "general": [
        {"name": "matter", "family": "stem", "symbol": "@hour_stem"},
        {"name": "agent", "family": "door", "symbol": "@duty_door"},
    ],
}

NATIVE_SUBJECT = {"name": "native", "family": "stem", "symbol": "@native"}

DEFAULT_STRENGTH_SCORES: dict[str, dict[str, int]] = {
    "seasonal": {"dominant": 15, "supportive": 10, "neutral": 0, "restrained": -5, "exhausted": -10},
    "palace": {"generates": 8, "generated_by": 15, "restrains": -5, "restrained_by": -15, "same": 12},
    "hour": {"generates": 8, "generated_by": 12, "restrains": -3, "restrained_by": -8, "same": 10},
}

SEASONS = ("wood", "fire", "metal", "water")
# Stem standing in for 甲 when no pillar gives its xun.
HIDDEN_JIA_DEFAULT = "戊"
_WORD_RE = re.compile(r"[a-z]+")


def classify_intent(query: str, keywords: list[tuple[str, tuple[str, ...]]] | None = None) -> str:
    keywords = INTENT_KEYWORDS if keywords is None else keywords
    text = (query or "").lower()
    words = set(_WORD_RE.findall(text))
    for category, terms in keywords:
        for term in terms:
            if term.isascii():
                if term in words:
                    return category
            elif term in text:
                return category
    return DEFAULT_INTENT


def normalize_profile(profile: Mapping[str, Any] | None) -> dict[str, Any]:
    if not profile:
        return {"gender": None, "birth_date": None}
    gender = profile.get("gender")
    if gender is not None:
        gender = str(gender).strip().lower() or None
        if gender not in (None, "male", "female"):
            raise InputValidationError("gender must be 'male' or 'female'.")
    birth_date = profile.get("birth_date")
    if isinstance(birth_date, str):
        try:
            birth_date = date.fromisoformat(birth_date)
        except ValueError as exc:
            raise InputValidationError(f"birth_date must be YYYY-MM-DD: {exc}") from exc
    elif birth_date is not None and not isinstance(birth_date, date):
        raise InputValidationError("birth_date must be a date.")
    return {"gender": gender, "birth_date": birth_date}


def _visible_stem(stem: str, carrier: SexagenaryLabel | None = None) -> str:
    """甲 never sits on the plate; use the instrument of its xun."""
    if stem != "甲":
        return stem
    if carrier is not None:
        return carrier.xun_instrument
    return HIDDEN_JIA_DEFAULT


def resolve_reference(
    symbol: str,
    pillars: FourPillars,
    plate: Plate,
    profile: Mapping[str, Any],
) -> str | None:
    if not symbol.startswith("@"):
        return symbol
    day = pillars.day
    gender = profile.get("gender")

    if symbol == "@day_stem":
        return _visible_stem(day.stem_name, day)
    if symbol == "@hour_stem":
        return hour_stem_marker(pillars.hour)
    if symbol == "@duty_door":
        return plate.duty_door
    if symbol == "@marriage_self":
        if gender in GENDER_REFERENCES[symbol]:
            return GENDER_REFERENCES[symbol][gender]
        return _visible_stem(day.stem_name, day)
    if symbol == "@partner":
        if gender in GENDER_REFERENCES[symbol]:
            return GENDER_REFERENCES[symbol][gender]
        return _visible_stem(tables.COMBINING_STEMS[day.stem_name])
    if symbol == "@opponent":
        return _visible_stem(tables.OPPOSING_STEMS[day.stem_name])
    if symbol == "@native":
        birth_date = profile.get("birth_date")
        if birth_date is None:
            return None
        native = year_label_for_date(birth_date)
        return _visible_stem(native.stem_name, native)
    raise ValueError(f"unknown subject reference: {symbol}")


def select_subjects(
    category: str,
    pillars: FourPillars,
    plate: Plate,
    profile: Mapping[str, Any] | None = None,
    registry: Mapping[str, Any] | None = None,
) -> list[dict[str, Any]]:
    registry = CATEGORY_SUBJECTS if registry is None else registry
    profile = profile or {}
    entries = list(registry.get(category) or registry[DEFAULT_INTENT])
    if profile.get("birth_date") is not None:
        entries.append(NATIVE_SUBJECT)

    subjects: list[dict[str, Any]] = []
    for entry in entries:
        symbol = resolve_reference(entry["symbol"], pillars, plate, profile)
        subjects.append(
            {
                "name": entry["name"],
                "family": entry["family"],
                "symbol": symbol,
                "reference": entry["symbol"] if entry["symbol"].startswith("@") else None,
            }
        )
    return subjects


GENDER_REFERENCES = {
    "@marriage_self": {"male": "庚", "female": "乙"},
    "@partner": {"male": "乙", "female": "庚"},
}


def describe_subjects(
    category: str,
    gender: str | None = None,
    registry: Mapping[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Registry entries for a category without a plate.

    Fixed symbols and gender-dependent references resolve; references that
    need the moment's pillars stay None.
    """
    registry = CATEGORY_SUBJECTS if registry is None else registry
    entries = registry.get(category) or registry[DEFAULT_INTENT]
    described: list[dict[str, Any]] = []
    for entry in entries:
        symbol = entry["symbol"]
        if not symbol.startswith("@"):
            resolved = symbol
        else:
            resolved = GENDER_REFERENCES.get(symbol, {}).get(gender or "")
        described.append(
            {
                "name": entry["name"],
                "family": entry["family"],
                "symbol": symbol,
                "resolved": resolved,
                "element": tables.element_of(entry["family"], resolved) if resolved else None,
            }
        )
    return described


def find_symbol_in_plate(
    plate: Plate,
    family: str,
    symbol: str | None,
    layers: tuple[str, ...] = ("heaven", "ground"),
) -> tuple[str, int]:
    """Return (layer, palace index) of the first palace holding `symbol`."""
    if family not in tables.FAMILIES:
        raise ValueError(f"unknown family: {family}")
    if symbol is not None:
        for layer_name in layers:
            for palace in plate.layer(layer_name):
                if palace.symbol(family) == symbol:
                    return layer_name, palace.index
    raise LookupMiss(family, str(symbol))


def season_for_term(term_index: int) -> str:
    return SEASONS[(term_index % 24) // 6]


def seasonal_state(element: str, season: str) -> str:
    """旺相休囚死 of `element` in `season`."""
    if element == season:
        return "dominant"
    if tables.GENERATES[season] == element:
        return "supportive"
    if tables.GENERATES[element] == season:
        return "neutral"
    if tables.RESTRAINS[element] == season:
        return "restrained"
    return "exhausted"


def score_subject(
    subject: Mapping[str, Any],
    plate: Plate,
    term_index: int,
    hour_branch: str,
    scores: Mapping[str, Mapping[str, int]] | None = None,
) -> dict[str, Any]:
    scores = DEFAULT_STRENGTH_SCORES if scores is None else scores
    family = subject["family"]
    symbol = subject["symbol"]
    result: dict[str, Any] = {
        "subject": subject["name"],
        "family": family,
        "symbol": symbol,
        "element": tables.element_of(family, symbol) if symbol else None,
        "found": False,
        "layer": None,
        "palace": None,
        "palace_name": None,
        "seasonal": 0,
        "palace_relation": 0,
        "hour_relation": 0,
        "total": 0,
        "factors": [],
    }

    try:
        layer, palace = find_symbol_in_plate(plate, family, symbol)
    except LookupMiss as exc:
        logger.warning("Subject %s not located: %s", subject["name"], exc)
        result["factors"].append("not_found")
        return result

    element = result["element"]
    if element is None:
        logger.warning("Subject %s has no element for %s/%s", subject["name"], family, symbol)
        result["factors"].append("no_element")
        return result

    season = season_for_term(term_index)
    state = seasonal_state(element, season)
    palace_rel = tables.element_relation(element, tables.palace_element(palace))
    hour_rel = tables.element_relation(element, tables.BRANCH_ELEMENTS[hour_branch])

    seasonal = int(scores["seasonal"][state])
    palace_score = int(scores["palace"][palace_rel])
    hour_score = int(scores["hour"][hour_rel])

    result.update(
        {
            "found": True,
            "layer": layer,
            "palace": palace,
            "palace_name": tables.palace_name(palace),
            "seasonal": seasonal,
            "palace_relation": palace_score,
            "hour_relation": hour_score,
            "total": seasonal + palace_score + hour_score,
            "factors": [
                f"season:{state}:{seasonal:+d}",
                f"palace:{palace_rel}:{palace_score:+d}",
                f"hour:{hour_rel}:{hour_score:+d}",
            ],
        }
    )
    return result


def _score_bounds(scores: Mapping[str, Mapping[str, int]]) -> tuple[int, int]:
    low = sum(min(table.values()) for table in scores.values())
    high = sum(max(table.values()) for table in scores.values())
    return low, high


def overall_favorability(
    strengths: Mapping[str, Mapping[str, Any]],
    scores: Mapping[str, Mapping[str, int]] | None = None,
) -> float:
    """Mean subject total mapped linearly onto 0..100."""
    scores = DEFAULT_STRENGTH_SCORES if scores is None else scores
    if not strengths:
        return 50.0
    low, high = _score_bounds(scores)
    mean = sum(s["total"] for s in strengths.values()) / len(strengths)
    if high <= low:
        return 50.0
    clipped = max(low, min(mean, high))
    return round((clipped - low) / (high - low) * 100.0, 2)


def evaluate_subjects(
    query: str,
    plate: Plate,
    pillars: FourPillars,
    term_index: int,
    profile: Mapping[str, Any] | None = None,
    scores: Mapping[str, Mapping[str, int]] | None = None,
    keywords: list[tuple[str, tuple[str, ...]]] | None = None,
    registry: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Classify the query, score each subject and roll up favorability."""
    profile = normalize_profile(profile)
    category = classify_intent(query, keywords)
    subjects = select_subjects(category, pillars, plate, profile, registry)
    hour_branch = pillars.hour.branch_name

    strengths: dict[str, dict[str, Any]] = {}
    for subject in subjects:
        strengths[subject["name"]] = score_subject(subject, plate, term_index, hour_branch, scores)

    return {
        "intent": category,
        "subjects": subjects,
        "strengths": strengths,
        "favorability": overall_favorability(strengths, scores),
        "season": season_for_term(term_index),
    }
