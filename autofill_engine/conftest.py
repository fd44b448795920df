import os

import pytest

DEFAULT_PROFILE = os.path.join(os.path.dirname(__file__), "tests", "fixtures", "profile.yaml")


def pytest_addoption(parser):
    """Add custom command-line options to pytest."""
    parser.addoption(
        "--profile", action="store", default=None, help="Path to the profile JSON/YAML file used by loader tests"
    )


@pytest.fixture
def profile_path(request):
    return request.config.getoption("--profile") or DEFAULT_PROFILE
