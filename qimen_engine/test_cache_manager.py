from __future__ import annotations

import time
import unittest

from qimen_engine.cache_manager import CacheManager, make_cache_key


class TestCacheManager(unittest.TestCase):
    def test_ttl_expiry(self) -> None:
        cache = CacheManager(max_items=10)
        cache.set("k", "v", ttl=1)
        self.assertEqual(cache.get("k"), "v")
        time.sleep(1.1)
        self.assertIsNone(cache.get("k"))

    def test_lru_eviction_when_capacity_exceeded(self) -> None:
        cache = CacheManager(max_items=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        self.assertIsNone(cache.get("a"))
        self.assertEqual(cache.get("c"), 3)

    def test_get_or_compute_reports_hits(self) -> None:
        cache = CacheManager(max_items=4, default_ttl=60)
        calls = []

        def factory() -> dict:
            calls.append(1)
            return {"probability": 50}

        first, first_cached = cache.get_or_compute("reading", factory)
        second, second_cached = cache.get_or_compute("reading", factory)
        self.assertFalse(first_cached)
        self.assertTrue(second_cached)
        self.assertIs(first, second)
        self.assertEqual(len(calls), 1)
        self.assertEqual(cache.stats()["hits"], 1)
        self.assertEqual(cache.stats()["misses"], 1)

    def test_clear_resets_counters(self) -> None:
        cache = CacheManager(max_items=4)
        cache.set("a", 1)
        cache.get("a")
        cache.clear()
        self.assertEqual(len(cache), 0)
        self.assertEqual(cache.stats()["hits"], 0)


class TestCacheKey(unittest.TestCase):
    def test_key_ignores_mapping_order(self) -> None:
        left = make_cache_key("analyze", {"question": "婚姻", "moment": {"year": 2024, "month": 6}})
        right = make_cache_key("analyze", {"moment": {"month": 6, "year": 2024}, "question": "婚姻"})
        self.assertEqual(left, right)
        self.assertTrue(left.startswith("analyze:"))

    def test_key_distinguishes_payloads(self) -> None:
        self.assertNotEqual(make_cache_key("analyze", {"q": "a"}), make_cache_key("analyze", {"q": "b"}))


if __name__ == "__main__":
    unittest.main()
