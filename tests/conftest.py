"""Shared pytest setup: import path and store fixture."""
import sys
from pathlib import Path

import pytest

# Tests run from a checkout without installing baha_miner
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def store(tmp_path):
    """A fresh SQLite-backed BuildingStore under a not-yet-existing directory."""
    from baha_miner.store import BuildingStore

    return BuildingStore(tmp_path / "data" / "building.db")
