from __future__ import annotations

import unittest

from qimen_engine import pattern_analyzer
from qimen_engine.epoch import Cycle
from qimen_engine.pattern_rules import PATTERN_RULES
from qimen_engine.plate_builder import build_plate
from qimen_engine.sexagenary import SexagenaryLabel


def _summer_noon_plate():
    return build_plate(Cycle(ju=9, ascending=False, term_index=9, yuan=1), SexagenaryLabel(stem=0, branch=6))


class TestDetectPatterns(unittest.TestCase):
    def test_reference_plate_matches(self) -> None:
        matches = pattern_analyzer.detect_patterns(_summer_noon_plate())
        self.assertEqual([m["rule_id"] for m in matches], ["W02", "C03", "W11", "D01"])
        fu_yin = matches[-1]
        self.assertEqual(fu_yin["name"], "伏吟")
        self.assertEqual(fu_yin["palaces"], list(range(9)))
        self.assertEqual(fu_yin["polarity"], "inauspicious")
        self.assertEqual(matches[0]["palace_names"], ["坤"])

    def test_unreachable_rule_changes_nothing(self) -> None:
        plate = _summer_noon_plate()
        baseline = pattern_analyzer.detect_patterns(plate)
        extra = {"id": "X99", "name": "甲临宫", "scope": "palace", "magnitude": 25, "when": {"heaven_stem": ["甲"]}}
        extended = pattern_analyzer.detect_patterns(plate, list(PATTERN_RULES) + [extra])
        self.assertEqual(baseline, extended)

    def test_plate_scope_respects_min_count(self) -> None:
        rule = pattern_analyzer.validate_rule(
            {"id": "P01", "scope": "plate", "magnitude": -3, "min_count": 10, "when": {"displacement": ["unmoved"]}}
        )
        self.assertEqual(pattern_analyzer.detect_patterns(_summer_noon_plate(), [rule]), [])

    def test_opposite_duty_bundle_is_fan_yin(self) -> None:
        plate = build_plate(Cycle(ju=1, ascending=True, term_index=21, yuan=1), SexagenaryLabel(stem=1, branch=1))
        ids = [m["rule_id"] for m in pattern_analyzer.detect_patterns(plate)]
        self.assertIn("D02", ids)
        self.assertIn("D03", ids)
        self.assertNotIn("D01", ids)

    def test_ordering_by_magnitude_then_id(self) -> None:
        plate = build_plate(Cycle(ju=4, ascending=True, term_index=21, yuan=2), SexagenaryLabel.from_cycle_index(47))
        matches = pattern_analyzer.detect_patterns(plate)
        keys = [(-abs(m["magnitude"]), m["rule_id"], m["palaces"][0]) for m in matches]
        self.assertEqual(keys, sorted(keys))

    def test_summary(self) -> None:
        summary = pattern_analyzer.summarize_patterns(pattern_analyzer.detect_patterns(_summer_noon_plate()))
        self.assertEqual(summary, {"count": 4, "auspicious": 2, "inauspicious": 2, "net_magnitude": 23})


class TestValidateRule(unittest.TestCase):
    def test_rejects_malformed_rules(self) -> None:
        bad_rules = [
            {"magnitude": 5, "when": {"star": ["天心"]}},
            {"id": "B01", "magnitude": 30, "when": {"star": ["天心"]}},
            {"id": "B02", "magnitude": True, "when": {"star": ["天心"]}},
            {"id": "B03", "magnitude": 5, "when": {}},
            {"id": "B04", "magnitude": 5, "when": {"planet": ["Sun"]}},
            {"id": "B05", "magnitude": 5, "scope": "global", "when": {"star": ["天心"]}},
            {"id": "B06", "magnitude": 5, "scope": "plate", "min_count": 0, "when": {"star": ["天心"]}},
        ]
        for rule in bad_rules:
            with self.subTest(rule=rule):
                with self.assertRaises(ValueError):
                    pattern_analyzer.validate_rule(rule)

    def test_rejects_scalar_and_string_values(self) -> None:
        for when in ({"door": 5}, {"door": "开门"}, {"palace": 8}):
            with self.subTest(when=when):
                with self.assertRaises(ValueError):
                    pattern_analyzer.validate_rule({"id": "S01", "magnitude": 3, "when": when})

    def test_normalizes_values_to_tuples(self) -> None:
        rule = pattern_analyzer.validate_rule({"id": "N01", "magnitude": 3, "when": {"door": ["开门", "休门"]}})
        self.assertEqual(rule["name"], "N01")
        self.assertEqual(rule["scope"], "palace")
        self.assertEqual(rule["when"]["door"], ("开门", "休门"))

    def test_builtin_rules_are_valid(self) -> None:
        ids = [pattern_analyzer.validate_rule(rule)["id"] for rule in PATTERN_RULES]
        self.assertEqual(len(ids), len(set(ids)))


if __name__ == "__main__":
    unittest.main()
