"""Pytest configuration and shared fixtures."""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tests.fixtures.test_inputs import (
    get_test_site,
    get_sell_scenario,
    get_hold_scenario,
    get_hold_site,
)


@pytest.fixture
def site():
    """Inner-suburban VIC site, $2M purchase price."""
    return get_test_site()


@pytest.fixture
def sell_scenario():
    """20-unit build-to-sell scenario."""
    return get_sell_scenario()


@pytest.fixture
def hold_site():
    """Site for the build-to-rent scenario."""
    return get_hold_site()


@pytest.fixture
def hold_scenario():
    """12-unit build-to-rent scenario with refinance and a two year hold."""
    return get_hold_scenario()
