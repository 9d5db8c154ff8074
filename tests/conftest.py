# Ensure the repository root is on sys.path so `print_bridge` can be imported in tests,
# and provide a recording fake printer driver shared by the engine tests.

import sys
import threading
import time
from pathlib import Path
from typing import List

import pytest


def _ensure_repo_root_on_syspath() -> None:
    # This file lives at: <repo_root>/tests/conftest.py
    here = Path(__file__).resolve()
    repo_str = str(here.parent.parent)
    if repo_str not in sys.path:
        sys.path.insert(0, repo_str)


_ensure_repo_root_on_syspath()


class FakeDriver:
    """
    In-memory printer driver. Records every frame written and the peak number
    of writers inside write() at once.
    """

    def __init__(self) -> None:
        self.opens = 0
        self.closes = 0
        self.writes: List[bytes] = []
        self.fail_opens = 0
        self.fail_writes = 0
        self.healthy = True
        self.write_delay = 0.0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def open(self):
        with self._lock:
            self.opens += 1
            if self.fail_opens > 0:
                self.fail_opens -= 1
                raise OSError("printer not found")
            return {"handle": self.opens}

    def write(self, handle, data: bytes) -> None:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.write_delay:
                time.sleep(self.write_delay)
            with self._lock:
                if self.fail_writes > 0:
                    self.fail_writes -= 1
                    raise OSError("broken pipe")
                self.writes.append(data)
        finally:
            with self._lock:
                self.active -= 1

    def close(self, handle) -> None:
        self.closes += 1

    def probe(self, handle) -> bool:
        return self.healthy


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def make_engine(fake_driver):
    """
    Factory building a PrintEngine on the fake driver with fast timings.
    Engines created through it are stopped at teardown.
    """
    from print_bridge.core.config import EngineSettings
    from print_bridge.printing import PrintEngine

    engines = []

    def _make(start: bool = True, **overrides):
        values = {
            "printer_type": "dummy",
            "acquire_timeout": 0.2,
            "backoff_base": 0.01,
            "backoff_cap": 0.02,
            "backoff_jitter": 0.0,
        }
        values.update(overrides)
        engine = PrintEngine(EngineSettings(**values), driver=fake_driver)
        if start:
            engine.start()
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.stop(timeout=2.0)
