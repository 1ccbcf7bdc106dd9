"""Global pytest configuration and fixtures."""

import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Import fixtures from storage base to make them globally available
from tests.storage.base.fixtures import (
    temp_storage_dir,
    sample_records,
)

# Re-export fixtures for global use
__all__ = [
    "temp_storage_dir",
    "sample_records",
]


class FakeClock:
    """Deterministic clock; advances by ``step`` on every call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 2, 0, 0, tzinfo=timezone.utc))
