from unittest.mock import AsyncMock

import pytest

from relocation_flows.registry import QuestionSetRegistry


@pytest.fixture(scope="session")
def registry():
    """The packaged question sets, loaded once for the whole run."""
    r = QuestionSetRegistry()
    r.load()
    return r


@pytest.fixture
def mock_db():
    """AsyncMock standing in for AsyncSession — flush/commit are no-ops."""
    return AsyncMock()
