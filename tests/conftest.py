"""Pytest configuration - shared image fixtures.

Every test builds its images in memory or under tmp_path; nothing depends on
files in the repository.
"""
from __future__ import annotations

import pytest
from PIL import Image


@pytest.fixture
def solid_png(tmp_path):
    """Factory that writes a solid-color PNG and returns its path."""
    def _make(color=(30, 120, 200), size=(300, 200), name="solid.png"):
        path = tmp_path / name
        Image.new("RGB", size, color).save(path)
        return path
    return _make
