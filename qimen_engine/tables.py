"""Static symbol tables for the Qimen plate.

Everything here is plain data. Palace index i is Luoshu number i + 1.
"""

from __future__ import annotations

STEMS = ("甲", "乙", "丙", "丁", "戊", "己", "庚", "辛", "壬", "癸")
BRANCHES = ("子", "丑", "寅", "卯", "辰", "巳", "午", "未", "申", "酉", "戌", "亥")

ELEMENTS = ("wood", "fire", "earth", "metal", "water")

STEM_ELEMENTS = {
    "甲": "wood",
    "乙": "wood",
    "丙": "fire",
    "丁": "fire",
    "戊": "earth",
    "己": "earth",
    "庚": "metal",
    "辛": "metal",
    "壬": "water",
    "癸": "water",
}

BRANCH_ELEMENTS = {
    "子": "water",
    "丑": "earth",
    "寅": "wood",
    "卯": "wood",
    "辰": "earth",
    "巳": "fire",
    "午": "fire",
    "未": "earth",
    "申": "metal",
    "酉": "metal",
    "戌": "earth",
    "亥": "water",
}

GENERATES = {
    "wood": "fire",
    "fire": "earth",
    "earth": "metal",
    "metal": "water",
    "water": "wood",
}

RESTRAINS = {
    "wood": "earth",
    "earth": "water",
    "water": "fire",
    "fire": "metal",
    "metal": "wood",
}

PALACES = (
    {"index": 0, "number": 1, "name": "坎", "key": "kan", "direction": "N", "element": "water"},
    {"index": 1, "number": 2, "name": "坤", "key": "kun", "direction": "SW", "element": "earth"},
    {"index": 2, "number": 3, "name": "震", "key": "zhen", "direction": "E", "element": "wood"},
    {"index": 3, "number": 4, "name": "巽", "key": "xun", "direction": "SE", "element": "wood"},
    {"index": 4, "number": 5, "name": "中", "key": "center", "direction": "C", "element": "earth"},
    {"index": 5, "number": 6, "name": "乾", "key": "qian", "direction": "NW", "element": "metal"},
    {"index": 6, "number": 7, "name": "兑", "key": "dui", "direction": "W", "element": "metal"},
    {"index": 7, "number": 8, "name": "艮", "key": "gen", "direction": "NE", "element": "earth"},
    {"index": 8, "number": 9, "name": "离", "key": "li", "direction": "S", "element": "fire"},
)

CENTER_PALACE = 4
# Center palace lodges in 坤 for door and god anchoring.
CENTER_LODGE_PALACE = 1

# Outer palaces in compass (clockwise) order starting from 坎.
OUTER_RING = (0, 7, 2, 3, 8, 1, 6, 5)

# Six instruments followed by the three wonders; 甲 is never placed.
STEM_SEQUENCE = ("戊", "己", "庚", "辛", "壬", "癸", "丁", "丙", "乙")
THREE_WONDERS = ("乙", "丙", "丁")

# Xun head (60-cycle index // 10) -> instrument hiding 甲.
XUN_INSTRUMENTS = ("戊", "己", "庚", "辛", "壬", "癸")
XUN_NAMES = ("甲子", "甲戌", "甲申", "甲午", "甲辰", "甲寅")

STAR_SEQUENCE = ("天蓬", "天芮", "天冲", "天辅", "天禽", "天心", "天柱", "天任", "天英")
STAR_ELEMENTS = {
    "天蓬": "water",
    "天芮": "earth",
    "天冲": "wood",
    "天辅": "wood",
    "天禽": "earth",
    "天心": "metal",
    "天柱": "metal",
    "天任": "earth",
    "天英": "fire",
}

DOOR_SEQUENCE = ("休门", "生门", "伤门", "杜门", "景门", "死门", "惊门", "开门")
DOOR_ELEMENTS = {
    "休门": "water",
    "生门": "earth",
    "伤门": "wood",
    "杜门": "wood",
    "景门": "fire",
    "死门": "earth",
    "惊门": "metal",
    "开门": "metal",
}

GOD_SEQUENCE = ("值符", "螣蛇", "太阴", "六合", "白虎", "玄武", "九地", "九天")
GOD_ELEMENTS = {
    "值符": "earth",
    "螣蛇": "fire",
    "太阴": "metal",
    "六合": "wood",
    "白虎": "metal",
    "玄武": "water",
    "九地": "earth",
    "九天": "metal",
}

# ju -> palace index where 戊 (and the walk) starts.
JU_ANCHOR_PALACE = {1: 0, 2: 1, 3: 2, 4: 3, 5: 4, 6: 5, 7: 6, 8: 7, 9: 8}
# ju -> lead palace for the star and god walks.
JU_LEAD_PALACE = {1: 0, 2: 1, 3: 2, 4: 3, 5: 4, 6: 5, 7: 6, 8: 7, 9: 8}

# Hour branch -> door start palace (12 -> 9 with collisions, never center).
HOUR_BRANCH_DOOR_PALACE = {
    "子": 0,
    "丑": 1,
    "寅": 2,
    "卯": 2,
    "辰": 3,
    "巳": 3,
    "午": 8,
    "未": 1,
    "申": 6,
    "酉": 6,
    "戌": 7,
    "亥": 0,
}

FAMILY_ELEMENTS = {
    "stem": STEM_ELEMENTS,
    "star": STAR_ELEMENTS,
    "door": DOOR_ELEMENTS,
    "god": GOD_ELEMENTS,
}

FAMILIES = ("stem", "star", "door", "god")

# Stem pairs used for partner and opponent subjects.
COMBINING_STEMS = {
    "甲": "己",
    "乙": "庚",
    "丙": "辛",
    "丁": "壬",
    "戊": "癸",
    "己": "甲",
    "庚": "乙",
    "辛": "丙",
    "壬": "丁",
    "癸": "戊",
}

OPPOSING_STEMS = {
    "甲": "庚",
    "乙": "辛",
    "丙": "壬",
    "丁": "癸",
    "戊": "甲",
    "己": "乙",
    "庚": "丙",
    "辛": "丁",
    "壬": "戊",
    "癸": "己",
}


def palace_name(index: int) -> str:
    return PALACES[index]["name"]


def palace_element(index: int) -> str:
    return PALACES[index]["element"]


def element_of(family: str, symbol: str) -> str | None:
    return FAMILY_ELEMENTS.get(family, {}).get(symbol)


def element_relation(subject: str, other: str) -> str:
    """Five-phase relation of `subject` toward `other`."""
    if subject == other:
        return "same"
    if GENERATES[subject] == other:
        return "generates"
    if GENERATES[other] == subject:
        return "generated_by"
    if RESTRAINS[subject] == other:
        return "restrains"
    return "restrained_by"
