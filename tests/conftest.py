import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


class RecordingTranslate:
    def __init__(self, func=str.upper) -> None:
        self.func = func
        self.calls: list[str] = []

    def __call__(self, text: str) -> str:
        self.calls.append(text)
        return self.func(text)


@pytest.fixture
def upper() -> RecordingTranslate:
    return RecordingTranslate()


@pytest.fixture
def never_called() -> RecordingTranslate:
    def fail(text: str) -> str:
        raise AssertionError(f"translate called with {text!r}")

    return RecordingTranslate(fail)
