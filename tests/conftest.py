import pytest
from fastapi.testclient import TestClient

from vector_search.main import app


@pytest.fixture()
def client() -> TestClient:
    """Provide a FastAPI test client."""
    return TestClient(app)
