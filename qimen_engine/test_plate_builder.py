from __future__ import annotations

import json
import unittest
from collections import Counter

from qimen_engine import plate_builder, tables
from qimen_engine.epoch import Cycle
from qimen_engine.sexagenary import SexagenaryLabel


def _cycle(ju: int, ascending: bool) -> Cycle:
    return Cycle(ju=ju, ascending=ascending, term_index=21 if ascending else 9, yuan=1)


SAMPLE_HOURS = [SexagenaryLabel.from_cycle_index(i) for i in (0, 1, 13, 30, 47, 59)]


class TestGroundLayer(unittest.TestCase):
    def test_each_family_is_a_permutation(self) -> None:
        for ju in range(1, 10):
            for ascending in (True, False):
                for hour in SAMPLE_HOURS:
                    ground = plate_builder.build_ground_layer(_cycle(ju, ascending), hour)
                    self.assertEqual(sorted(p.stem for p in ground), sorted(tables.STEM_SEQUENCE))
                    self.assertEqual(sorted(p.star for p in ground), sorted(tables.STAR_SEQUENCE))
                    outer = [p for p in ground if p.index != tables.CENTER_PALACE]
                    self.assertEqual(sorted(p.door for p in outer), sorted(tables.DOOR_SEQUENCE))
                    self.assertEqual(sorted(p.god for p in outer), sorted(tables.GOD_SEQUENCE))
                    center = ground[tables.CENTER_PALACE]
                    self.assertIsNone(center.door)
                    self.assertIsNone(center.god)

    def test_descending_ju9_stem_order(self) -> None:
        ground = plate_builder.build_ground_layer(_cycle(9, False), SexagenaryLabel(stem=0, branch=6))
        self.assertEqual(
            [p.stem for p in ground],
            ["乙", "丙", "丁", "癸", "壬", "辛", "庚", "己", "戊"],
        )
        self.assertEqual(ground[8].door, "休门")
        self.assertEqual(ground[1].door, "开门")

    def test_ring_walk_rejects_center(self) -> None:
        with self.assertRaises(ValueError):
            plate_builder.walk_ring(tables.CENTER_PALACE, 8, True)


class TestHeavenLayer(unittest.TestCase):
    def test_heaven_is_a_rearrangement_of_ground(self) -> None:
        for ju in range(1, 10):
            for ascending in (True, False):
                for hour in SAMPLE_HOURS:
                    plate = plate_builder.build_plate(_cycle(ju, ascending), hour)
                    for family in tables.FAMILIES:
                        self.assertEqual(
                            Counter(plate_builder.family_symbols(plate.ground, family)),
                            Counter(plate_builder.family_symbols(plate.heaven, family)),
                        )
                    self.assertEqual(sorted(p.index for p in plate.heaven), list(range(9)))

    def test_anchor_bundle_lands_on_hour_stem(self) -> None:
        for ju in range(1, 10):
            for ascending in (True, False):
                for hour in SAMPLE_HOURS:
                    plate = plate_builder.build_plate(_cycle(ju, ascending), hour)
                    self.assertFalse(plate.degraded)
                    landed = plate.heaven[plate.hour_palace]
                    self.assertEqual(landed.source, plate.anchor_palace)
                    self.assertEqual(landed.stem, hour.xun_instrument)

    def test_zero_offset_is_fu_yin(self) -> None:
        plate = plate_builder.build_plate(_cycle(9, False), SexagenaryLabel(stem=0, branch=6))
        self.assertEqual(plate.anchor_palace, 5)
        self.assertEqual(plate.hour_palace, 5)
        self.assertEqual(plate.rotation_offset, 0)
        self.assertTrue(all(p.displacement == "unmoved" for p in plate.heaven))
        self.assertEqual(plate.duty_star, "天辅")
        self.assertEqual(plate.duty_door, "死门")

    def test_opposite_landing(self) -> None:
        # 乙丑 hour in ju 1 ascending: 戊 bundle at 坎 flies to 离.
        plate = plate_builder.build_plate(_cycle(1, True), SexagenaryLabel(stem=1, branch=1))
        self.assertEqual(plate.anchor_palace, 0)
        self.assertEqual(plate.hour_palace, 8)
        self.assertEqual(plate.rotation_offset, 1)
        self.assertEqual(plate.heaven[8].stem, "戊")
        self.assertEqual(plate.heaven[8].source, 0)
        self.assertEqual(plate.heaven[8].displacement, "opposite")

    def test_missing_hour_stem_degrades(self) -> None:
        layout = dict(plate_builder.DEFAULT_LAYOUT)
        layout["stem_sequence"] = ("戊", "己", "庚", "X", "壬", "癸", "丁", "丙", "乙")
        with self.assertLogs("plate_builder", level="WARNING"):
            plate = plate_builder.build_plate(_cycle(9, False), SexagenaryLabel(stem=0, branch=6), layout)
        self.assertTrue(plate.degraded)
        self.assertEqual(plate.rotation_offset, 0)
        self.assertIsNone(plate.anchor_palace)
        self.assertIsNone(plate.duty_star)
        self.assertEqual([w.code for w in plate.warnings], ["hour_anchor_missing"])

    def test_serialization_is_deterministic(self) -> None:
        first = plate_builder.build_plate(_cycle(4, True), SAMPLE_HOURS[3]).to_dict()
        second = plate_builder.build_plate(_cycle(4, True), SAMPLE_HOURS[3]).to_dict()
        self.assertEqual(
            json.dumps(first, ensure_ascii=False, sort_keys=True),
            json.dumps(second, ensure_ascii=False, sort_keys=True),
        )


class TestDisplacement(unittest.TestCase):
    def test_classes(self) -> None:
        self.assertEqual(plate_builder.classify_displacement(3, 3), "unmoved")
        self.assertEqual(plate_builder.classify_displacement(0, 8), "opposite")
        self.assertEqual(plate_builder.classify_displacement(2, 6), "opposite")
        self.assertEqual(plate_builder.classify_displacement(2, 3), "adjacent")
        self.assertEqual(plate_builder.classify_displacement(1, 3), "skip_one")
        self.assertEqual(plate_builder.classify_displacement(0, 4), "distant")


if __name__ == "__main__":
    unittest.main()
