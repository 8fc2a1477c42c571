"""Solar term + yuan -> ju number and walk direction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from qimen_engine.errors import InvariantViolation
from qimen_engine.solar_terms import SOLAR_TERM_NAMES

logger = logging.getLogger("epoch")

# Term name -> (ascending, (上元, 中元, 下元)).
JU_TABLE = {
    "冬至": (True, (1, 7, 4)),
    "小寒": (True, (2, 8, 5)),
    "大寒": (True, (3, 9, 6)),
    "立春": (True, (8, 5, 2)),
    "雨水": (True, (9, 6, 3)),
    "惊蛰": (True, (1, 7, 4)),
    "春分": (True, (3, 9, 6)),
    "清明": (True, (4, 1, 7)),
    "谷雨": (True, (5, 2, 8)),
    "立夏": (True, (4, 1, 7)),
    "小满": (True, (5, 2, 8)),
    "芒种": (True, (6, 3, 9)),
    "夏至": (False, (9, 3, 6)),
    "小暑": (False, (8, 2, 5)),
    "大暑": (False, (7, 1, 4)),
    "立秋": (False, (2, 5, 8)),
    "处暑": (False, (1, 4, 7)),
    "白露": (False, (9, 3, 6)),
    "秋分": (False, (7, 1, 4)),
    "寒露": (False, (6, 9, 3)),
    "霜降": (False, (5, 8, 2)),
    "立冬": (False, (6, 9, 3)),
    "小雪": (False, (5, 8, 2)),
    "大雪": (False, (4, 7, 1)),
}

YUAN_NAMES = {1: "上元", 2: "中元", 3: "下元"}
FALLBACK_JU = 1


@dataclass(frozen=True)
class Cycle:
    ju: int
    ascending: bool
    term_index: int
    yuan: int
    degraded: bool = False

    @property
    def direction(self) -> str:
        return "ascending" if self.ascending else "descending"

    def to_dict(self) -> dict[str, Any]:
        return {
            "ju": self.ju,
            "ascending": self.ascending,
            "direction": self.direction,
            "dun": "阳遁" if self.ascending else "阴遁",
            "term": SOLAR_TERM_NAMES[self.term_index] if 0 <= self.term_index < 24 else None,
            "yuan": self.yuan,
            "yuan_name": YUAN_NAMES.get(self.yuan),
            "degraded": self.degraded,
        }


def _violation(message: str, strict: bool) -> None:
    if strict:
        raise InvariantViolation(message)
    logger.error("Invariant violation (falling back to ju=%s): %s", FALLBACK_JU, message)


def resolve_cycle(
    term_index: int,
    yuan: int,
    ju_table: dict[str, Any] | None = None,
    strict: bool = False,
) -> Cycle:
    """Look up the ju for a term/yuan pair.

    Out-of-range input is a defect: raised in strict mode, otherwise replaced
    by ju=1 ascending and flagged degraded.
    """
    table = JU_TABLE if ju_table is None else ju_table

    if not isinstance(term_index, int) or not 0 <= term_index < 24:
        _violation(f"term index out of range: {term_index!r}", strict)
        return Cycle(ju=FALLBACK_JU, ascending=True, term_index=0, yuan=1, degraded=True)
    if yuan not in YUAN_NAMES:
        _violation(f"yuan out of range: {yuan!r}", strict)
        return Cycle(ju=FALLBACK_JU, ascending=True, term_index=term_index, yuan=1, degraded=True)

    entry = table.get(SOLAR_TERM_NAMES[term_index])
    if entry is None:
        _violation(f"ju table has no entry for {SOLAR_TERM_NAMES[term_index]}", strict)
        return Cycle(ju=FALLBACK_JU, ascending=True, term_index=term_index, yuan=yuan, degraded=True)

    ascending, ju_values = entry
    ju = ju_values[yuan - 1]
    if not isinstance(ju, int) or not 1 <= ju <= 9:
        _violation(f"ju {ju!r} outside [1, 9] for {SOLAR_TERM_NAMES[term_index]}", strict)
        return Cycle(ju=FALLBACK_JU, ascending=True, term_index=term_index, yuan=yuan, degraded=True)

    return Cycle(ju=ju, ascending=bool(ascending), term_index=term_index, yuan=yuan)
