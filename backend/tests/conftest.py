from unittest.mock import patch

import pytest

from app.db.repository import InMemoryItemRepository
from factories import site_rule_book


@pytest.fixture(autouse=True)
def no_notifications():
    """Keep emails out of unit tests; yields the mock for assertions."""
    with patch("app.services.notifications.dispatch") as mock_dispatch:
        yield mock_dispatch


@pytest.fixture
def repo():
    return InMemoryItemRepository()


@pytest.fixture
def rules():
    return site_rule_book()
