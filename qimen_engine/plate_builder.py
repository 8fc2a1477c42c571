"""Ground and Heaven layer construction.

Ground: stems and stars walk the Luoshu palaces (center included) from a
ju-derived anchor; doors and gods walk the eight outer palaces in compass
order. Heaven: the whole Ground layer is translated so that the bundle under
the hour's xun instrument lands on the palace holding the hour stem.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping

from qimen_engine import tables
from qimen_engine.epoch import Cycle
from qimen_engine.errors import ApproximationWarning
from qimen_engine.sexagenary import SexagenaryLabel

logger = logging.getLogger("plate_builder")

DEFAULT_LAYOUT: dict[str, Any] = {
    "stem_sequence": tables.STEM_SEQUENCE,
    "star_sequence": tables.STAR_SEQUENCE,
    "door_sequence": tables.DOOR_SEQUENCE,
    "god_sequence": tables.GOD_SEQUENCE,
    "ju_anchor_palace": tables.JU_ANCHOR_PALACE,
    "ju_lead_palace": tables.JU_LEAD_PALACE,
    "hour_branch_door_palace": tables.HOUR_BRANCH_DOOR_PALACE,
    "outer_ring": tables.OUTER_RING,
}

DISPLACEMENTS = ("unmoved", "opposite", "adjacent", "skip_one", "distant")


@dataclass(frozen=True)
class Palace:
    index: int
    stem: str | None = None
    star: str | None = None
    door: str | None = None
    god: str | None = None
    source: int | None = None
    displacement: str | None = None

    def symbol(self, family: str) -> str | None:
        return getattr(self, family)

    def to_dict(self) -> dict[str, Any]:
        info = tables.PALACES[self.index]
        payload = {
            "index": self.index,
            "number": info["number"],
            "name": info["name"],
            "direction": info["direction"],
            "element": info["element"],
            "stem": self.stem,
            "star": self.star,
            "door": self.door,
            "god": self.god,
        }
        if self.source is not None:
            payload["source"] = self.source
            payload["displacement"] = self.displacement
        return payload


@dataclass(frozen=True)
class Plate:
    ground: tuple[Palace, ...]
    heaven: tuple[Palace, ...]
    cycle: Cycle
    hour: SexagenaryLabel
    anchor_palace: int | None
    hour_palace: int | None
    rotation_offset: int
    duty_star: str | None
    duty_door: str | None
    degraded: bool = False
    warnings: tuple[ApproximationWarning, ...] = ()

    def layer(self, name: str) -> tuple[Palace, ...]:
        if name == "heaven":
            return self.heaven
        if name == "ground":
            return self.ground
        raise ValueError(f"unknown layer: {name}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle": self.cycle.to_dict(),
            "hour": self.hour.to_dict(),
            "anchor_palace": self.anchor_palace,
            "hour_palace": self.hour_palace,
            "rotation_offset": self.rotation_offset,
            "duty_star": self.duty_star,
            "duty_door": self.duty_door,
            "degraded": self.degraded,
            "ground": [p.to_dict() for p in self.ground],
            "heaven": [p.to_dict() for p in self.heaven],
        }


def walk_luoshu(start: int, count: int, ascending: bool) -> list[int]:
    step = 1 if ascending else -1
    return [(start + step * i) % 9 for i in range(count)]


def walk_ring(start_palace: int, count: int, ascending: bool, ring: tuple[int, ...] = tables.OUTER_RING) -> list[int]:
    if start_palace not in ring:
        raise ValueError(f"palace {start_palace} is not on the outer ring")
    step = 1 if ascending else -1
    origin = ring.index(start_palace)
    return [ring[(origin + step * i) % len(ring)] for i in range(count)]


def _lodge(palace: int) -> int:
    return tables.CENTER_LODGE_PALACE if palace == tables.CENTER_PALACE else palace


def _place(sequence: tuple[str, ...], positions: list[int]) -> dict[int, str]:
    return {palace: symbol for palace, symbol in zip(positions, sequence)}


def build_ground_layer(
    cycle: Cycle,
    hour: SexagenaryLabel,
    layout: Mapping[str, Any] | None = None,
) -> tuple[Palace, ...]:
    layout = layout or DEFAULT_LAYOUT
    anchor = layout["ju_anchor_palace"][cycle.ju]
    lead = layout["ju_lead_palace"][cycle.ju]
    ring = tuple(layout["outer_ring"])

    stems = _place(layout["stem_sequence"], walk_luoshu(anchor, 9, cycle.ascending))
    stars = _place(layout["star_sequence"], walk_luoshu(lead, 9, cycle.ascending))
    door_start = layout["hour_branch_door_palace"][hour.branch_name]
    doors = _place(layout["door_sequence"], walk_ring(_lodge(door_start), 8, cycle.ascending, ring))
    gods = _place(layout["god_sequence"], walk_ring(_lodge(lead), 8, cycle.ascending, ring))

    return tuple(
        Palace(
            index=i,
            stem=stems.get(i),
            star=stars.get(i),
            door=doors.get(i),
            god=gods.get(i),
        )
        for i in range(9)
    )


def hour_stem_marker(hour: SexagenaryLabel) -> str:
    """The stem the hour is represented by on the plate; 甲 hides under its xun instrument."""
    if hour.stem_name == "甲":
        return hour.xun_instrument
    return hour.stem_name


def locate_stem(layer: tuple[Palace, ...], stem: str) -> int | None:
    for palace in layer:
        if palace.stem == stem:
            return palace.index
    return None


def classify_displacement(source: int, target: int) -> str:
    if source == target:
        return "unmoved"
    if source + target == 8:
        return "opposite"
    diff = (target - source) % 9
    if diff in (1, 8):
        return "adjacent"
    if diff in (2, 7):
        return "skip_one"
    return "distant"


def rotation_offset(anchor: int, hour_palace: int, ascending: bool) -> int:
    if ascending:
        return (anchor - hour_palace) % 9
    return (hour_palace - anchor) % 9


def rotate_to_heaven(ground: tuple[Palace, ...], offset: int, ascending: bool) -> tuple[Palace, ...]:
    heaven: list[Palace | None] = [None] * 9
    for palace in ground:
        target = (palace.index - offset) % 9 if ascending else (palace.index + offset) % 9
        heaven[target] = replace(
            palace,
            index=target,
            source=palace.index,
            displacement=classify_displacement(palace.index, target),
        )
    return tuple(heaven)  # type: ignore[arg-type]


def build_heaven_layer(
    ground: tuple[Palace, ...],
    cycle: Cycle,
    hour: SexagenaryLabel,
) -> tuple[tuple[Palace, ...], dict[str, Any]]:
    """Rotate Ground onto Heaven; never raises when the hour marker is missing."""
    anchor = locate_stem(ground, hour.xun_instrument)
    marker = hour_stem_marker(hour)
    hour_palace = locate_stem(ground, marker)
    warnings: list[ApproximationWarning] = []

    if anchor is None or hour_palace is None:
        missing = hour.xun_instrument if anchor is None else marker
        warning = ApproximationWarning("hour_anchor_missing", f"stem {missing} not on ground layer; rotation offset forced to 0")
        logger.warning("%s", warning)
        warnings.append(warning)
        offset = 0
    else:
        offset = rotation_offset(anchor, hour_palace, cycle.ascending)

    info = {
        "anchor_palace": anchor,
        "hour_palace": hour_palace,
        "rotation_offset": offset,
        "degraded": bool(warnings),
        "warnings": tuple(warnings),
    }
    return rotate_to_heaven(ground, offset, cycle.ascending), info


def build_plate(
    cycle: Cycle,
    hour: SexagenaryLabel,
    layout: Mapping[str, Any] | None = None,
) -> Plate:
    ground = build_ground_layer(cycle, hour, layout)
    heaven, info = build_heaven_layer(ground, cycle, hour)
    anchor = info["anchor_palace"]
    duty_star = ground[anchor].star if anchor is not None else None
    duty_door = ground[_lodge(anchor)].door if anchor is not None else None
    return Plate(
        ground=ground,
        heaven=heaven,
        cycle=cycle,
        hour=hour,
        anchor_palace=anchor,
        hour_palace=info["hour_palace"],
        rotation_offset=info["rotation_offset"],
        duty_star=duty_star,
        duty_door=duty_door,
        degraded=info["degraded"] or cycle.degraded,
        warnings=info["warnings"],
    )


def family_symbols(layer: tuple[Palace, ...], family: str) -> list[str]:
    return [p.symbol(family) for p in layer if p.symbol(family) is not None]
