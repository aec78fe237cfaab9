import os
import sys

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from church_dashboard.services.errors import NetworkFailure
from church_dashboard.utils.debounce import ManualScheduler


@pytest.fixture
def scheduler():
    """Fake clock for debounced lookups."""
    return ManualScheduler()


@pytest.fixture
def network_failure():
    return NetworkFailure("Service unavailable", status_code=503, url="/church/all-units")
