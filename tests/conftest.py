import sys
from pathlib import Path

import pytest

# Ensure the repository root is on sys.path so `cribbage` can be imported when
# the project is not installed as a package.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cribbage.core.scoring import clear_score_caches


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_score_caches()
    yield
