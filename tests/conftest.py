"""Pytest configuration for rxtrack tests."""

import os
import sys
from pathlib import Path

import pytest
import structlog
from structlog._config import BoundLoggerLazyProxy

# Add src directory to sys.path for test imports
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate each test from RXTRACK_ settings in the environment.

    This fixture:
    - Removes any RXTRACK_ environment variables
    - Runs the test from a temporary directory so no .env file is picked up
    - Resets the global settings instance before each test
    """
    for name in list(os.environ):
        if name.startswith("RXTRACK_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)

    from rxtrack.config import reset_settings

    reset_settings()

    return tmp_path


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Reset structlog after each test so configure_logging() calls do not leak.

    configure_logging() binds the PrintLogger to whatever sys.stderr is at the
    time, which under capsys is a capture buffer closed after the test.
    """
    yield
    structlog.reset_defaults()
    for module in list(sys.modules.values()):
        for attr in getattr(module, "__dict__", {}).values():
            if isinstance(attr, BoundLoggerLazyProxy):
                attr.__dict__.pop("bind", None)
