from __future__ import annotations

import json
import unittest

from qimen_engine import engine
from qimen_engine.context import build_engine_context
from qimen_engine.errors import InputValidationError
from qimen_engine.sexagenary import CalendarMoment

SUMMER_NOON = CalendarMoment(2024, 6, 21, 12, 0, utc_offset=8.0)


class TestBuildQimenPlate(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.context = build_engine_context(profile_path=None, strict=False)

    def test_reference_moment(self) -> None:
        payload = engine.build_qimen_plate(SUMMER_NOON, self.context)
        self.assertEqual(payload["solar_term"]["name"], "夏至")
        self.assertEqual(payload["solar_term"]["yuan"], 1)
        self.assertEqual(payload["cycle"]["ju"], 9)
        self.assertEqual(payload["cycle"]["direction"], "descending")
        calendar = payload["calendar"]
        self.assertEqual(
            [calendar["year"]["name"], calendar["month"]["name"], calendar["day"]["name"], calendar["hour"]["name"]],
            ["甲辰", "庚午", "丙辰", "甲午"],
        )
        self.assertEqual(calendar["month"]["naive"]["name"], "己巳")
        self.assertEqual(payload["plate"]["rotation_offset"], 0)
        self.assertIn("D01", [m["rule_id"] for m in payload["patterns"]])
        self.assertFalse(payload["degraded"])
        self.assertEqual(payload["warnings"], [])
        self.assertEqual(payload["engine"], {"version": engine.ENGINE_VERSION, "signature": engine.ENGINE_SIGNATURE})

    def test_identical_inputs_give_identical_output(self) -> None:
        first = engine.build_qimen_plate(SUMMER_NOON, self.context)
        second = engine.build_qimen_plate(SUMMER_NOON, self.context)
        self.assertEqual(
            json.dumps(first, ensure_ascii=False, sort_keys=True),
            json.dumps(second, ensure_ascii=False, sort_keys=True),
        )

    def test_invalid_moment_rejected(self) -> None:
        with self.assertRaises(InputValidationError):
            engine.build_qimen_plate(CalendarMoment(2024, 13, 1), self.context)

    def test_every_hour_of_a_day_builds(self) -> None:
        for hour in range(24):
            payload = engine.build_qimen_plate(CalendarMoment(2024, 11, 3, hour, 30, utc_offset=8.0), self.context)
            self.assertTrue(1 <= payload["cycle"]["ju"] <= 9)
            self.assertFalse(payload["degraded"])


class TestBuildQimenReading(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.context = build_engine_context(profile_path=None, strict=False)

    def test_career_reading(self) -> None:
        reading = engine.build_qimen_reading(SUMMER_NOON, "  career opportunity ", None, self.context)
        self.assertEqual(reading["query"], "career opportunity")
        self.assertEqual(reading["intent"], "career")
        self.assertEqual(reading["season"], "fire")
        self.assertIn("self", reading["subjects"])
        self.assertEqual(reading["outcome"]["pattern_sum"], 23)
        self.assertTrue(15 <= reading["outcome"]["probability"] <= 85)
        self.assertEqual(reading["profile"], {"gender": None, "birth_date": None})

    def test_profile_is_echoed(self) -> None:
        reading = engine.build_qimen_reading(
            SUMMER_NOON, "婚姻", {"gender": "female", "birth_date": "1990-05-01"}, self.context
        )
        self.assertEqual(reading["intent"], "marriage")
        self.assertEqual(reading["profile"], {"gender": "female", "birth_date": "1990-05-01"})
        self.assertEqual(reading["subjects"]["self"]["symbol"], "乙")
        self.assertIn("native", reading["subjects"])

    def test_query_validation(self) -> None:
        with self.assertRaises(InputValidationError):
            engine.build_qimen_reading(SUMMER_NOON, "   ", None, self.context)
        with self.assertRaises(InputValidationError):
            engine.build_qimen_reading(SUMMER_NOON, "x" * (engine.MAX_QUERY_LENGTH + 1), None, self.context)
        with self.assertRaises(InputValidationError):
            engine.build_qimen_reading(SUMMER_NOON, None, None, self.context)  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
