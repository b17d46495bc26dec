"""Pytest configuration and fixtures"""
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from helpers import make_bundle  # noqa: E402
from services.selection_state import SelectionState  # noqa: E402


@pytest.fixture
def bundle():
    return make_bundle()


@pytest.fixture
def empty_selection(bundle):
    return SelectionState.empty(bundle)
