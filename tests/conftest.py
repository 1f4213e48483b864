from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from helpers import RecordingTools  # noqa: E402


@pytest.fixture
def tools() -> RecordingTools:
    return RecordingTools()


@pytest.fixture
def now() -> float:
    return time.time()
