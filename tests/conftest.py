import pytest


class RecordingTrigger:
    """
    Trigger that only counts how many times it was fired.
    """
    def __init__(self):
        self.count = 0
        self.closed = False

    async def trigger(self) -> None:
        self.count += 1

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def trigger() -> RecordingTrigger:
    return RecordingTrigger()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1_700_000_000)
