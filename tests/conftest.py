"""Pytest configuration."""
import sys
from pathlib import Path

import pytest

# Ensure project root is importable regardless of where pytest is invoked
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


@pytest.fixture
def file_backend(tmp_path, monkeypatch):
    """Route storage to files under a temporary DATA_DIR."""
    from storage import database

    monkeypatch.setattr(database, "USE_POSTGRES", False)
    monkeypatch.setattr(database, "DATA_DIR", tmp_path)
    return tmp_path
