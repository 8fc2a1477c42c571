"""Declarative pattern rule table.

`when` maps palace-view fields to the values they may take:
heaven_stem, ground_stem, star, door, god (Heaven layer symbols), palace
(index), displacement (Heaven displacement class) and zhifu (palace that
received the duty bundle). Plate-scope rules match when at least
`min_count` palaces satisfy `when`.
"""

from __future__ import annotations

from typing import Any

AUSPICIOUS_DOORS = ["开门", "休门", "生门"]
MOVED = ["adjacent", "skip_one", "distant", "opposite"]

PATTERN_RULES: list[dict[str, Any]] = [
    # Three wonders
    {"id": "W01", "name": "乙奇得门", "scope": "palace", "magnitude": 20,
     "when": {"heaven_stem": ["乙"], "door": AUSPICIOUS_DOORS}},
    {"id": "W02", "name": "丙奇得门", "scope": "palace", "magnitude": 20,
     "when": {"heaven_stem": ["丙"], "door": AUSPICIOUS_DOORS}},
    {"id": "W03", "name": "玉女守门", "scope": "palace", "magnitude": 20,
     "when": {"heaven_stem": ["丁"], "door": AUSPICIOUS_DOORS}},
    {"id": "W04", "name": "乙奇升殿", "scope": "palace", "magnitude": 25,
     "when": {"heaven_stem": ["乙"], "palace": [8]}},
    {"id": "W05", "name": "丙奇升殿", "scope": "palace", "magnitude": 25,
     "when": {"heaven_stem": ["丙"], "palace": [8]}},
    {"id": "W06", "name": "丁奇升殿", "scope": "palace", "magnitude": 25,
     "when": {"heaven_stem": ["丁"], "palace": [8]}},
    {"id": "W07", "name": "乙奇入墓", "scope": "palace", "magnitude": -15,
     "when": {"heaven_stem": ["乙"], "palace": [1]}},
    {"id": "W08", "name": "丙奇入墓", "scope": "palace", "magnitude": -15,
     "when": {"heaven_stem": ["丙"], "palace": [5]}},
    {"id": "W09", "name": "丁奇入墓", "scope": "palace", "magnitude": -15,
     "when": {"heaven_stem": ["丁"], "palace": [7]}},
    {"id": "W10", "name": "乙奇得使", "scope": "palace", "magnitude": 15,
     "when": {"heaven_stem": ["乙"], "ground_stem": ["己"]}},
    {"id": "W11", "name": "日奇伏吟", "scope": "palace", "magnitude": -10,
     "when": {"heaven_stem": ["乙"], "displacement": ["unmoved"]}},
    {"id": "W12", "name": "月奇悖师", "scope": "palace", "magnitude": -15,
     "when": {"heaven_stem": ["丙"], "ground_stem": ["庚"]}},
    {"id": "W13", "name": "星奇朝斗", "scope": "palace", "magnitude": 18,
     "when": {"heaven_stem": ["丁"], "star": ["天心"]}},
    {"id": "W14", "name": "三奇飞宫", "scope": "palace", "magnitude": 5,
     "when": {"heaven_stem": ["乙", "丙", "丁"], "displacement": MOVED}},
    # Heaven stem over Ground stem
    {"id": "S01", "name": "青龙返首", "scope": "palace", "magnitude": 12,
     "when": {"heaven_stem": ["戊"], "ground_stem": ["己"]}},
    {"id": "S02", "name": "太白入荧", "scope": "palace", "magnitude": -12,
     "when": {"heaven_stem": ["戊"], "ground_stem": ["庚"]}},
    {"id": "S03", "name": "青龙折足", "scope": "palace", "magnitude": -10,
     "when": {"heaven_stem": ["戊"], "ground_stem": ["辛"]}},
    {"id": "S04", "name": "贵人入狱", "scope": "palace", "magnitude": -8,
     "when": {"heaven_stem": ["己"], "ground_stem": ["戊"]}},
    {"id": "S05", "name": "地网高张", "scope": "palace", "magnitude": -15,
     "when": {"heaven_stem": ["己"], "ground_stem": ["癸"]}},
    {"id": "S06", "name": "太白逢星", "scope": "palace", "magnitude": 10,
     "when": {"heaven_stem": ["庚"], "ground_stem": ["乙"]}},
    {"id": "S07", "name": "亭亭之格", "scope": "palace", "magnitude": 15,
     "when": {"heaven_stem": ["庚"], "ground_stem": ["丁"]}},
    # Star and door together
    {"id": "C01", "name": "天心开门", "scope": "palace", "magnitude": 25,
     "when": {"star": ["天心"], "door": ["开门"]}},
    {"id": "C02", "name": "天任生门", "scope": "palace", "magnitude": 20,
     "when": {"star": ["天任"], "door": ["生门"]}},
    {"id": "C03", "name": "天英景门", "scope": "palace", "magnitude": 18,
     "when": {"star": ["天英"], "door": ["景门"]}},
    # Displacement
    {"id": "D01", "name": "伏吟", "scope": "plate", "magnitude": -5, "min_count": 3,
     "when": {"displacement": ["unmoved"]}},
    {"id": "D02", "name": "反吟", "scope": "palace", "magnitude": -8,
     "when": {"zhifu": [True], "displacement": ["opposite"]}},
    {"id": "D03", "name": "值符飞宫", "scope": "palace", "magnitude": 0,
     "when": {"zhifu": [True], "displacement": MOVED}},
]

VIEW_FIELDS = ("heaven_stem", "ground_stem", "star", "door", "god", "palace", "displacement", "zhifu")
MAGNITUDE_LIMIT = 25
