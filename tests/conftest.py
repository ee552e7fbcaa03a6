"""Shared pytest fixtures for the SysY test suite."""

from __future__ import annotations

import pytest

from sysy.quickfix import QuickFixEngine


@pytest.fixture
def engine() -> QuickFixEngine:
    return QuickFixEngine()


@pytest.fixture
def sy_file(tmp_path):
    """Write a .sy file into a fresh directory and return its path."""

    def write(source: str, name: str = "main.sy"):
        path = tmp_path / name
        path.write_text(source)
        return path

    return write
