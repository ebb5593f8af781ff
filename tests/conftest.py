"""Pytest configuration and shared fixtures."""

import io
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from smeta.main import app
from smeta.models.estimate_models import PageImage
from smeta.services.vision.vision_adapter import VisionModelAdapter


def make_jpeg(width: int = 200, height: int = 100, color: str = "white") -> bytes:
    """Encode a solid-color JPEG of the given size."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def mock_session() -> AsyncMock:
    """Create mock database session."""
    session = AsyncMock()
    session.commit = AsyncMock()
    session.flush = AsyncMock()
    session.rollback = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def mock_adapter() -> AsyncMock:
    """Vision adapter whose call_json result each test sets."""
    adapter = AsyncMock(spec=VisionModelAdapter)
    adapter.call_json = AsyncMock()
    adapter.call = AsyncMock()
    return adapter


@pytest.fixture
def page_factory() -> Callable[..., PageImage]:
    """Build PageImage objects backed by real JPEG bytes."""
    def _make(page_number: int = 1, width: int = 400, height: int = 300, color: str = "white") -> PageImage:
        return PageImage(
            page_number=page_number,
            image=make_jpeg(width, height, color),
            width=width,
            height=height,
        )
    return _make


@pytest.fixture
def jpeg_factory() -> Callable[..., bytes]:
    return make_jpeg
