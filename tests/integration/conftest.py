"""
Integration test fixtures for Luna.

Provides fixtures specific to integration testing:
- FastAPI test client wired to an engine with a frozen clock
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from tools.luna.api import create_app
from tools.luna.engine import LocalExecutionEngine


# ─────────────────────────────────────────────────────────────────────────────
# API Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def luna_client(engine: LocalExecutionEngine) -> Generator[TestClient, None, None]:
    """Test client for the Luna API backed by the shared engine fixture."""
    app = create_app(engine)
    with TestClient(app) as client:
        yield client
