"""Pytest configuration and fixtures."""

import io
import json
import struct
import zlib
from types import SimpleNamespace
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app.drawing_reader.main import app
from app.drawing_reader.services.extraction import ExtractionService
from app.drawing_reader.sessions import SessionRegistry


class FakeCompletions:
    """Stand-in for ``client.chat.completions`` recording every request."""

    def __init__(self, content: str | None = None, error: Exception | None = None):
        self.content = content
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    """Minimal AsyncOpenAI double exposing ``chat.completions.create``."""

    def __init__(self, content: str | None = None, error: Exception | None = None):
        self.completions = FakeCompletions(content=content, error=error)
        self.chat = SimpleNamespace(completions=self.completions)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def provider_payload() -> dict[str, Any]:
    """A provider answer with two BOM rows and one dimension."""
    return {
        "metadata": {
            "title": "MOUNTING BRACKET",
            "drawingNumber": "DWG-1042",
            "revision": "B",
            "date": "2024-03-01",
            "drawnBy": "J. Smith",
        },
        "dimensions": [
            {
                "feature": "Mounting Hole",
                "type": "Diameter",
                "value": "Ø10",
                "unit": "mm",
                "notes": "2 places",
            }
        ],
        "bom": [
            {
                "itemNumber": "1",
                "partNumber": "BRK-100",
                "description": "Bracket plate",
                "quantity": "1",
                "material": "Steel",
                "remarks": "",
            },
            {
                "itemNumber": "2",
                "partNumber": "M8x20",
                "description": "Hex bolt",
                "quantity": "4x",
                "material": "Steel",
                "remarks": "DIN 933",
            },
        ],
    }


@pytest.fixture
def fake_openai(provider_payload: dict[str, Any]) -> FakeOpenAI:
    """Fake provider client answering with `provider_payload`."""
    return FakeOpenAI(content=json.dumps(provider_payload))


@pytest.fixture
def extraction_service(fake_openai: FakeOpenAI) -> ExtractionService:
    """Extraction service wired to the fake provider."""
    return ExtractionService(api_key="test-key", client=fake_openai)


@pytest.fixture
def sample_png_bytes() -> bytes:
    """A small white PNG standing in for a scanned drawing."""
    buffer = io.BytesIO()
    Image.new("RGB", (64, 48), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def sample_jpeg_bytes() -> bytes:
    """A small JPEG standing in for a photographed drawing."""
    buffer = io.BytesIO()
    Image.new("RGB", (64, 48), color="white").save(buffer, format="JPEG")
    return buffer.getvalue()


def _png_chunk(kind: bytes, data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data))


@pytest.fixture
def oversized_png_bytes() -> bytes:
    """PNG whose header declares 20000x20000 pixels, beyond Pillow's pixel limit."""
    ihdr = struct.pack(">IIBBBBB", 20000, 20000, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", ihdr)
        + _png_chunk(b"IDAT", zlib.compress(b"\x00"))
        + _png_chunk(b"IEND", b"")
    )


@pytest.fixture
def client(extraction_service: ExtractionService) -> Generator[TestClient, None, None]:
    """Create a test client whose services talk to the fake provider."""
    with TestClient(app) as test_client:
        app.state.extraction_service = extraction_service
        app.state.sessions = SessionRegistry(extraction_service)
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_openai():
    """Factory for fake provider clients with a chosen answer or error."""
    return FakeOpenAI
