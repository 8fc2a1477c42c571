from __future__ import annotations

import unittest
from datetime import date

from qimen_engine import sexagenary
from qimen_engine.errors import InputValidationError
from qimen_engine.sexagenary import CalendarMoment, SexagenaryLabel


class TestSexagenaryLabel(unittest.TestCase):
    def test_cycle_index_roundtrip_and_wrap(self) -> None:
        for index in (0, 1, 17, 40, 59):
            self.assertEqual(SexagenaryLabel.from_cycle_index(index).cycle_index, index)
        self.assertEqual(SexagenaryLabel.from_cycle_index(59).name, "癸亥")
        self.assertEqual(SexagenaryLabel.from_cycle_index(59).next().name, "甲子")

    def test_parity_mismatch_rejected(self) -> None:
        with self.assertRaises(ValueError):
            SexagenaryLabel(stem=0, branch=1)
        with self.assertRaises(ValueError):
            SexagenaryLabel(stem=10, branch=0)

    def test_xun_instrument(self) -> None:
        self.assertEqual(SexagenaryLabel(stem=0, branch=6).xun_instrument, "辛")
        self.assertEqual(SexagenaryLabel(stem=1, branch=1).xun_instrument, "戊")


class TestPillarFormulas(unittest.TestCase):
    def test_year_epoch(self) -> None:
        self.assertEqual(sexagenary.year_label(1984).name, "甲子")
        self.assertEqual(sexagenary.year_label(2024).name, "甲辰")

    def test_year_switches_at_lichun(self) -> None:
        self.assertEqual(sexagenary.year_label_for_date(date(2024, 2, 3)).name, "癸卯")
        self.assertEqual(sexagenary.year_label_for_date(date(2024, 2, 5)).name, "甲辰")

    def test_day_epoch(self) -> None:
        self.assertEqual(sexagenary.day_label(date(2024, 1, 1)).name, "甲子")
        self.assertEqual(sexagenary.day_label(date(2024, 6, 21)).name, "丙辰")

    def test_month_five_tigers(self) -> None:
        # 甲 and 己 years open with 丙寅.
        self.assertEqual(sexagenary.month_label(2024, 2).name, "丙寅")
        self.assertEqual(sexagenary.month_label(2019, 2).name, "丙寅")
        # 乙 years open with 戊寅.
        self.assertEqual(sexagenary.month_label(2025, 2).name, "戊寅")

    def test_hour_five_rats(self) -> None:
        jia_day = SexagenaryLabel(stem=0, branch=0)
        self.assertEqual(sexagenary.hour_label(jia_day, 0).name, "甲子")
        self.assertEqual(sexagenary.hour_label(jia_day, 12).name, "庚午")
        self.assertEqual(sexagenary.hour_branch_for(23), 0)
        self.assertEqual(sexagenary.hour_branch_for(1), 1)

    def test_jie_term_for_month(self) -> None:
        self.assertEqual(sexagenary.jie_term_for_month(2), 0)
        self.assertEqual(sexagenary.jie_term_for_month(6), 8)
        self.assertEqual(sexagenary.jie_term_for_month(1), 22)


class TestComputePillars(unittest.TestCase):
    def test_reference_moment(self) -> None:
        pillars = sexagenary.compute_pillars(CalendarMoment(2024, 6, 21, 12, 0, utc_offset=8.0))
        self.assertEqual(pillars.year.name, "甲辰")
        self.assertEqual(pillars.month.naive.name, "己巳")
        self.assertTrue(pillars.month.after_term)
        self.assertEqual(pillars.month.resolved.name, "庚午")
        self.assertEqual(pillars.day.name, "丙辰")
        self.assertEqual(pillars.hour.name, "甲午")
        self.assertFalse(pillars.approximate)

    def test_month_before_jie_keeps_naive_label(self) -> None:
        pillars = sexagenary.compute_pillars(CalendarMoment(2024, 6, 3, 12, 0, utc_offset=8.0))
        self.assertFalse(pillars.month.after_term)
        self.assertEqual(pillars.month.resolved.name, "己巳")

    def test_january_resolves_against_xiaohan(self) -> None:
        pillars = sexagenary.compute_pillars(CalendarMoment(2024, 1, 20, 12, 0, utc_offset=8.0))
        self.assertEqual(pillars.year.name, "癸卯")
        self.assertEqual(pillars.civil_year.name, "甲辰")
        self.assertEqual(pillars.month.resolved.name, "乙丑")

    def test_day_rolls_over_at_23(self) -> None:
        late = sexagenary.compute_pillars(CalendarMoment(2024, 1, 1, 23, 30, utc_offset=8.0))
        self.assertEqual(late.day.name, "乙丑")
        self.assertEqual(late.hour.branch_name, "子")
        midnight = sexagenary.compute_pillars(CalendarMoment(2024, 1, 1, 23, 30, utc_offset=8.0), rollover_hour=24)
        self.assertEqual(midnight.day.name, "甲子")

    def test_rejects_unsupported_rollover_hour(self) -> None:
        noon = CalendarMoment(2024, 6, 21, 12, 0, utc_offset=8.0)
        self.assertEqual(sexagenary.compute_pillars(noon, rollover_hour=24).day.name, "丙辰")
        for hour in (0, 12, 25):
            with self.subTest(hour=hour):
                with self.assertRaises(ValueError):
                    sexagenary.compute_pillars(noon, rollover_hour=hour)

    def test_local_mean_time_shifts_hour(self) -> None:
        self.assertAlmostEqual(sexagenary.lmt_correction_minutes(116.4, 8.0), -14.4)
        self.assertEqual(sexagenary.lmt_correction_minutes(None, 8.0), 0.0)
        pillars = sexagenary.compute_pillars(CalendarMoment(2024, 6, 21, 12, 0, utc_offset=8.0, longitude=90.0))
        self.assertEqual(pillars.local_time, "2024-06-21T10:00:00")
        self.assertEqual(pillars.hour.branch_name, "巳")
        self.assertEqual(pillars.lmt_minutes, -120.0)


class TestValidateMoment(unittest.TestCase):
    def test_rejects_bad_moments(self) -> None:
        bad = [
            CalendarMoment(2024, 13, 1),
            CalendarMoment(2024, 2, 30),
            CalendarMoment(1700, 1, 1),
            CalendarMoment(2024, 1, 1, utc_offset=20.0),
            CalendarMoment(2024, 1, 1, longitude=200.0),
            CalendarMoment(2024, 1, 1, hour=24),
        ]
        for moment in bad:
            with self.subTest(moment=moment):
                with self.assertRaises(InputValidationError):
                    sexagenary.validate_moment(moment)

    def test_rejects_non_moment(self) -> None:
        with self.assertRaises(InputValidationError):
            sexagenary.validate_moment({"year": 2024})

    def test_accepts_valid_moment(self) -> None:
        moment = CalendarMoment(2024, 6, 21, 12, 0, utc_offset=8.0)
        self.assertIs(sexagenary.validate_moment(moment), moment)


if __name__ == "__main__":
    unittest.main()
