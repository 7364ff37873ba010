"""Smoke tests for the pygame UI.

These tests verify that the application's main loop can initialise and
execute a handful of frames without crashing when the SDL dummy video
driver is used. They do not check rendering correctness; they ensure the
integration points between pygame and the simulator do not raise in a
headless environment.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

# Use the dummy drivers before importing pygame or the application
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


def test_app_runs_headless(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure the application can start and run a few frames headlessly."""
    monkeypatch.setenv("APTITUDE_DB_PATH", str(tmp_path / "history.sqlite3"))

    # Import inside the test so that environment variables take effect
    from aptitude_sim.app import run

    exit_code = run(max_frames=3)
    assert exit_code == 0
