"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import tempfile

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.detection import PanelBox, PresenceEstimate  # noqa: E402


class StubClassifier:
    """Presence classifier returning a fixed estimate."""

    def __init__(self, estimate=None, error=None):
        self.estimate = estimate
        self.error = error
        self.calls = 0

    def presence(self, request):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.estimate


class StubLocalizer:
    """Localizer laying boxes on a fixed row, optionally with a different count."""

    def __init__(self, override_count=None):
        self.override_count = override_count

    def localize(self, request, count):
        n = count if self.override_count is None else self.override_count
        return [PanelBox(x=10 + i * 70, y=20, w=60, h=40, confidence=0.9) for i in range(n)]


@pytest.fixture
def solar_estimate():
    return PresenceEstimate(has_solar=True, confidence=0.92, panel_count=14, quality_signal=0.9)


@pytest.fixture
def no_solar_estimate():
    return PresenceEstimate(has_solar=False, confidence=0.25, panel_count=0, quality_signal=0.9)


@pytest.fixture
def temp_db():
    """Create a temporary database file."""
    fd, path = tempfile.mkstemp(suffix=".sqlite")
    os.close(fd)
    yield path
    # Cleanup
    try:
        os.unlink(path)
    except OSError:
        pass


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
detection:
  backend: "simulated"
  seed: 7
  presence_threshold: 0.3

physics:
  avg_panel_area_sqm: 1.7
  watt_per_sqm: 180

storage:
  local_database_path: "data/test.sqlite"

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "detection": {
            "backend": "simulated",
            "seed": 42,
            "presence_threshold": 0.3,
            "timeout_s": 30.0,
        },
        "physics": {
            "avg_panel_area_sqm": 1.7,
            "watt_per_sqm": 180,
        },
        "workflow": {
            "max_attempts": 3,
            "backoff_s": 0.5,
            "backoff_factor": 2.0,
        },
        "storage": {
            "local_database_path": "data/test.sqlite",
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
