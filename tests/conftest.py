"""Pytest configuration and shared fixtures"""

import os
from pathlib import Path
from typing import Callable, List

import pytest


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test without APP_ overrides or a config file from the host"""
    for key in list(os.environ.keys()):
        if key.startswith("APP_"):
            monkeypatch.delenv(key, raising=False)


class FakeClock:
    """Manually advanced monotonic clock for rate limiter tests"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_files(tmp_path: Path) -> Callable[..., List[Path]]:
    """Create files with strictly increasing modification times.

    The first name gets the oldest mtime.
    """

    def _make(*names: str, directory: Path = tmp_path, content: bytes = b"data") -> List[Path]:
        directory.mkdir(parents=True, exist_ok=True)
        paths = []
        for i, name in enumerate(names):
            path = directory / name
            path.write_bytes(content)
            timestamp = 1_700_000_000 + i * 60
            os.utime(path, (timestamp, timestamp))
            paths.append(path)
        return paths

    return _make
