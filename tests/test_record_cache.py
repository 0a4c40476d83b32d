"""Tests for the on-disk record cache."""

import json
import threading
import time
from datetime import timedelta

from starmap.storage import RecordCache


class Clock:
    def __init__(self):
        self.now = time.time()

    def __call__(self):
        return self.now


class TestRecordCache:
    """Round-trip, expiry and corruption handling."""

    def test_miss_on_empty_cache(self, cache):
        assert cache.get(30000142) is None

    def test_put_then_get_round_trip(self, cache, system_factory):
        record = system_factory(30000142, name="Jita", planets=[(2, 1), (1, 0)])
        cache.put(30000142, record)
        assert cache.get(30000142) == record

    def test_one_file_per_key(self, cache, system_factory):
        cache.put(1, system_factory(1))
        cache.put(2, system_factory(2))
        names = sorted(path.name for path in cache.base_path.iterdir())
        assert names == ["1.json", "2.json"]

    def test_put_overwrites(self, cache, system_factory):
        cache.put(1, system_factory(1, name="Old"))
        cache.put(1, system_factory(1, name="New"))
        assert cache.get(1)["name"] == "New"

    def test_expired_entry_is_purged(self, tmp_path, system_factory):
        """An entry older than the TTL is a miss and is deleted."""
        clock = Clock()
        cache = RecordCache(base_path=tmp_path, ttl=timedelta(hours=24), clock=clock)
        cache.put(7, system_factory(7))

        clock.now += timedelta(hours=25).total_seconds()

        assert cache.get(7) is None
        assert not (tmp_path / "7.json").exists()
        assert cache.get(7) is None

    def test_entry_within_ttl_is_served(self, tmp_path, system_factory):
        clock = Clock()
        cache = RecordCache(base_path=tmp_path, ttl=timedelta(hours=24), clock=clock)
        cache.put(7, system_factory(7))

        clock.now += timedelta(hours=23).total_seconds()

        assert cache.get(7) is not None

    def test_invalidate(self, cache, system_factory):
        cache.put(3, system_factory(3))
        cache.invalidate(3)
        assert cache.get(3) is None

    def test_invalidate_missing_key_is_noop(self, cache):
        cache.invalidate(12345)

    def test_corrupt_entry_is_a_miss(self, cache):
        """Unreadable entries are removed and reported as misses."""
        cache.base_path.mkdir(parents=True)
        path = cache.base_path / "9.json"
        path.write_text("{not json", encoding="utf-8")

        assert cache.get(9) is None
        assert not path.exists()

    def test_non_object_entry_is_a_miss(self, cache):
        cache.base_path.mkdir(parents=True)
        (cache.base_path / "9.json").write_text(json.dumps([1, 2]), encoding="utf-8")
        assert cache.get(9) is None

    def test_split_separates_hits_and_misses(self, cache, system_factory):
        cache.put(1, system_factory(1))
        cache.put(3, system_factory(3))

        hits, misses = cache.split([1, 2, 3, 4])

        assert [record["system_id"] for record in hits] == [1, 3]
        assert misses == [2, 4]

    def test_concurrent_puts_to_different_keys(self, cache, system_factory):
        """Parallel writers on distinct keys leave every entry intact."""

        def writer(start):
            for key in range(start, start + 25):
                cache.put(key, system_factory(key))

        threads = [threading.Thread(target=writer, args=(start,)) for start in (0, 25, 50, 75)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for key in range(100):
            assert cache.get(key)["system_id"] == key
        assert not list(cache.base_path.glob("*.tmp"))
