import threading
import time

import pytest

from starmap.errors import FetchError
from starmap.storage import RecordCache


def make_system(system_id, name=None, planets=(), stargates=0, stations=0, security=0.5):
    """Build a synthetic ESI system record.

    ``planets`` is a sequence of ``(moons, belts)`` counts, one per planet.
    """
    return {
        "system_id": system_id,
        "name": name or f"System-{system_id}",
        "security_status": security,
        "planets": [
            {
                "planet_id": system_id * 100 + index,
                "moons": list(range(moons)),
                "asteroid_belts": list(range(belts)),
            }
            for index, (moons, belts) in enumerate(planets)
        ],
        "stargates": list(range(stargates)),
        "stations": list(range(stations)),
    }


class FakeClient:
    """In-memory stand-in for EsiClient."""

    def __init__(self, systems, failing=(), delays=None, broken=()):
        self.systems = {system["system_id"]: system for system in systems}
        self.failing = set(failing)
        self.broken = set(broken)
        self.delays = delays or {}
        self.fetched = []
        self._lock = threading.Lock()

    def list_system_ids(self):
        return list(self.systems)

    def fetch_system(self, system_id, cancel_event=None):
        with self._lock:
            self.fetched.append(system_id)
        delay = self.delays.get(system_id)
        if delay:
            time.sleep(delay)
        if system_id in self.failing:
            raise FetchError(system_id, "simulated outage")
        if system_id in self.broken:
            raise RuntimeError(f"unexpected failure for {system_id}")
        return dict(self.systems[system_id])


@pytest.fixture
def system_factory():
    return make_system


@pytest.fixture
def cache(tmp_path):
    return RecordCache(base_path=tmp_path / "systems")
