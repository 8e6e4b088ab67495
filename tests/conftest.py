"""Shared pytest configuration and fixtures for the ECP visual test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "device: mark test as requiring a real Roku on the network"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-device",
        action="store_true",
        default=False,
        help="Run tests that talk to a real Roku device",
    )


def pytest_collection_modifyitems(config, items):
    """Skip device tests unless --run-device is specified."""
    if config.getoption("--run-device"):
        return

    skip_device = pytest.mark.skip(reason="Need --run-device option to run")
    for item in items:
        if item.get_closest_marker("device") is not None:
            item.add_marker(skip_device)


