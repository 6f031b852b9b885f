"""
Extraction service package for reading engineering drawings.

This package provides:
- schema: The JSON schema requested from the model
- client: The single extraction call and response parsing
- exceptions: The extraction failure taxonomy

The ExtractionService class owns the provider client and is created once
by the host application.
"""

import logging
from typing import TYPE_CHECKING

from ...config import Settings
from ...models import BOMItem, DimensionItem, DrawingMetadata, ExtractionResult
from .client import (
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    EXTRACTION_PROMPT,
    extract,
    parse_extraction_response,
    validate_image_upload,
)
from .exceptions import (
    EmptyResponse,
    ExtractionFailure,
    InvalidInput,
    MalformedResponse,
    TransportFailure,
)
from .schema import build_extraction_schema, build_response_format

if TYPE_CHECKING:
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

__all__ = [
    "ExtractionService",
    "ExtractionFailure",
    "InvalidInput",
    "TransportFailure",
    "EmptyResponse",
    "MalformedResponse",
    "EXTRACTION_PROMPT",
    "build_extraction_schema",
    "build_response_format",
    "extract",
    "parse_extraction_response",
    "validate_image_upload",
]


class ExtractionService:
    """
    Service for AI-powered drawing extraction.

    Uses an OpenAI vision model with a JSON schema response format. The
    API key is resolved when the service is built; a missing key only
    fails the first extraction, not startup.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        use_mock: bool = False,
        client: "AsyncOpenAI | None" = None,
    ):
        """
        Initialize the extraction service.

        Args:
            api_key: OpenAI API key.
            model: OpenAI model to use (must support vision).
            temperature: Sampling temperature for extraction.
            use_mock: If True, return a canned result instead of calling OpenAI.
            client: Pre-built AsyncOpenAI-compatible client (mainly for tests).
        """
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.use_mock = use_mock
        self._client = client

        if self.use_mock:
            logger.warning(
                "Extraction service running in MOCK MODE. Unset USE_MOCK for real extraction."
            )
        elif not self.api_key and self._client is None:
            logger.warning("OPENAI_API_KEY is not set; extractions will fail until it is.")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExtractionService":
        """Build the service from application settings."""
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            temperature=settings.extraction_temperature,
            use_mock=settings.use_mock,
        )

    @property
    def client(self) -> "AsyncOpenAI":
        """Lazy-load the OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise TransportFailure(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
                )
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def extract(self, image_bytes: bytes, mime_type: str) -> ExtractionResult:
        """
        Extract metadata, dimensions and BOM rows from a drawing image.

        Args:
            image_bytes: Encoded image payload.
            mime_type: MIME type of the payload.

        Returns:
            ExtractionResult for the drawing.
        """
        if self.use_mock:
            logger.info("Extracting drawing data (MOCK MODE)")
            return self._get_mock_extraction()

        return await extract(
            image_bytes,
            mime_type,
            client=self.client,
            model=self.model,
            temperature=self.temperature,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client if one was created."""
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()
        self._client = None

    def _get_mock_extraction(self) -> ExtractionResult:
        """Return mock extraction data for development."""
        return ExtractionResult(
            metadata=DrawingMetadata(
                title="MOUNTING BRACKET",
                drawing_number="MOCK-DWG-001",
                revision="A",
                date="2024-01-15",
                drawn_by="MOCK",
            ),
            dimensions=[
                DimensionItem(feature="Mounting Hole", type="Diameter", value="Ø10", unit="mm", notes="2 places"),
                DimensionItem(feature="Corner", type="Radius", value="R5", unit="mm"),
                DimensionItem(feature="Base Plate", type="Length", value="120", unit="mm"),
            ],
            bom=[
                BOMItem(item_number="1", part_number="BRK-100", description="Bracket plate", quantity="1", material="Steel"),
                BOMItem(item_number="2", part_number="M8x20", description="Hex bolt", quantity="4x", material="Steel", remarks="DIN 933"),
            ],
        )
