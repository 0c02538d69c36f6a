from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pytest

from errors import PersistenceError
from service_hydration import HydrationService


class MemoryRepo:
    """In-memory stand-in for `StateRepo` with switchable failures."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.fail_writes = False
        self.fail_reads = False
        self.writes = 0

    def read(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise PersistenceError("read failed")
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise PersistenceError("quota exceeded")
        self.writes += 1
        self.data[key] = value

    def delete(self, key: str) -> None:
        if self.fail_writes:
            raise PersistenceError("delete failed")
        self.data.pop(key, None)

    def storage_bytes(self) -> int:
        return sum(len(k) + len(v) for k, v in self.data.items())

    def ping(self) -> None:
        return None


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def repo() -> MemoryRepo:
    return MemoryRepo()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 9, 30))


@pytest.fixture
def notices() -> List[Tuple[str, str]]:
    return []


@pytest.fixture
def service(repo: MemoryRepo, clock: FakeClock, notices: List[Tuple[str, str]]) -> HydrationService:
    svc = HydrationService(
        repo,
        clock=clock,
        notify=lambda level, message: notices.append((level, message)),
        history_cap=50,
        state_key="test-state",
    )
    svc.start()
    return svc
