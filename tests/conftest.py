# tests/conftest.py

import os

import pytest


@pytest.fixture
def clean_env(monkeypatch):
    """Empty process environment, for tests loading env vars without a prefix."""
    for name in list(os.environ):
        monkeypatch.delenv(name)
    return monkeypatch
