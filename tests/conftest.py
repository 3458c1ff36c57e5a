"""Pytest configuration helpers for test collection.

Ensure the project root is on sys.path so tests can import the package
without requiring it to be installed.
"""
import sys
from pathlib import Path

import pytest


def pytest_configure(config):
    # Insert repo root (one level up from tests/) to sys.path
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))


@pytest.fixture(params=["filesystem", "embedded"])
def store(request, tmp_path):
    """A fresh store for each backend."""
    from kfstore import Store

    s = Store(tmp_path / "store", backend=request.param)
    yield s
    s.close()
