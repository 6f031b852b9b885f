"""
Drawing extraction call against the OpenAI chat completions API.

Sends one drawing image with a fixed instruction and the extraction schema,
then validates the JSON answer into an ExtractionResult.
"""

import base64
import json
import logging
from typing import Any

from pydantic import ValidationError

from ...models import ExtractionResult
from .exceptions import EmptyResponse, InvalidInput, MalformedResponse, TransportFailure
from .schema import build_response_format

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4.1"
DEFAULT_TEMPERATURE = 0.1  # Favour literal transcription


# =============================================================================
# Prompts
# =============================================================================

EXTRACTION_SYSTEM_PROMPT = """You are a meticulous technical draughtsman reading engineering drawings.
Transcribe exactly what is printed on the drawing. Do not invent values, do not convert units
and do not normalise notation: keep symbols such as R, Ø, ± and quantity qualifiers like 4x.
Answer only with JSON that matches the requested schema."""

EXTRACTION_PROMPT = """Analyze this engineering drawing.
1. Locate the Title Block and extract key metadata (Title, Drawing Number, Revision, Date, Drawn By).
2. Identify and extract key geometric dimensions marked on the drawing.
   - Look for **Radius (R)** and **Diameter (Ø)** dimensions for circles, holes, and arcs.
   - Look for major Linear dimensions (Length, Width, Height, Thickness).
   - Infer the 'feature' name based on where the dimension points (e.g., "Mounting Hole", "Main Plate").
3. Locate the Bill of Materials (BOM), Parts List, or Material Schedule table and extract all rows.

Return the data in a structured JSON format containing 'metadata', 'dimensions', and 'bom'.
If a value is missing, use an empty string. Preserve all technical codes and dimensions accurately."""


# =============================================================================
# Helper Functions
# =============================================================================


def validate_image_upload(image_bytes: bytes, mime_type: str | None) -> None:
    """
    Check that a payload may be sent for extraction.

    Args:
        image_bytes: Encoded image payload.
        mime_type: Declared MIME type of the payload.

    Raises:
        InvalidInput: If the payload is empty or not declared as an image.
    """
    if not mime_type or not mime_type.lower().startswith("image/"):
        raise InvalidInput("Please upload an image file (PNG, JPG, WEBP).")
    if not image_bytes:
        raise InvalidInput("Empty file provided")


def _image_data_url(image_bytes: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def build_messages(image_bytes: bytes, mime_type: str) -> list[dict[str, Any]]:
    """Build the chat messages for one extraction request."""
    return [
        {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {
                    "type": "image_url",
                    "image_url": {
                        "url": _image_data_url(image_bytes, mime_type),
                        "detail": "high",
                    },
                },
                {"type": "text", "text": EXTRACTION_PROMPT},
            ],
        },
    ]


def parse_extraction_response(text: str | None) -> ExtractionResult:
    """
    Parse the provider's text payload into an ExtractionResult.

    Missing or null `bom` and `dimensions` become empty lists.

    Args:
        text: Raw message content returned by the provider.

    Returns:
        Validated ExtractionResult.

    Raises:
        EmptyResponse: If there is no text payload.
        MalformedResponse: If the payload is not valid JSON of the expected shape.
    """
    if not text or not text.strip():
        raise EmptyResponse("No data returned from the extraction model")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse extraction response: %s", text[:500])
        raise MalformedResponse(f"Invalid JSON in extraction response: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponse(
            f"Extraction response must be a JSON object, got {type(data).__name__}"
        )

    try:
        return ExtractionResult.model_validate(data)
    except ValidationError as e:
        logger.error("Extraction response failed validation: %s", e)
        raise MalformedResponse(f"Unexpected extraction response structure: {e}") from e


# =============================================================================
# Main Extraction Function
# =============================================================================


async def extract(
    image_bytes: bytes,
    mime_type: str,
    *,
    client: Any,  # AsyncOpenAI client
    model: str = DEFAULT_MODEL,
    temperature: float = DEFAULT_TEMPERATURE,
) -> ExtractionResult:
    """
    Extract title block, dimensions and BOM rows from one drawing image.

    Exactly one provider request is made; nothing is retried.

    Args:
        image_bytes: Encoded image payload (non-empty).
        mime_type: MIME type of the payload, starting with ``image/``.
        client: AsyncOpenAI client instance.
        model: Model name to use (must support vision).
        temperature: Sampling temperature.

    Returns:
        ExtractionResult with `dimensions` and `bom` always present.

    Raises:
        TransportFailure: If the provider call errors.
        EmptyResponse: If the provider returns no text.
        MalformedResponse: If the text is not the expected JSON.
    """
    logger.info(
        "Extracting drawing data (%d bytes, %s) with model %s",
        len(image_bytes),
        mime_type,
        model,
    )

    try:
        response = await client.chat.completions.create(
            model=model,
            messages=build_messages(image_bytes, mime_type),
            response_format=build_response_format(),
            temperature=temperature,
        )
    except Exception as e:
        logger.error("Extraction request failed: %s", e)
        raise TransportFailure(str(e) or type(e).__name__) from e

    if not response.choices:
        raise EmptyResponse("No data returned from the extraction model")

    result = parse_extraction_response(response.choices[0].message.content)

    logger.info(
        "Extracted %d BOM items and %d dimensions",
        len(result.bom),
        len(result.dimensions),
    )
    return result
