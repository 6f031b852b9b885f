"""
Response schema sent to the provider with every extraction request.

The field descriptions double as extraction hints for the model; keep them
word for word when editing.
"""

from typing import Any

RESPONSE_FORMAT_NAME = "drawing_extraction"


def _text(description: str) -> dict[str, str]:
    return {"type": "string", "description": description}


def build_extraction_schema() -> dict[str, Any]:
    """
    Build the JSON schema describing the requested extraction output.

    A new object is built on every call so callers may mutate the result.

    Returns:
        JSON schema with `metadata`, `dimensions` and `bom` properties.
    """
    metadata = {
        "type": "object",
        "properties": {
            "title": _text("The title of the drawing usually found in the title block"),
            "drawingNumber": _text("The unique drawing number or ID"),
            "revision": _text("Revision level (e.g., A, B, 1.0)"),
            "date": _text("Date found in the title block"),
            "drawnBy": _text("Name of the drafter or engineer"),
        },
        "description": "Information extracted from the drawing's title block",
    }

    dimensions = {
        "type": "array",
        "items": {
            "type": "object",
            "properties": {
                "feature": _text(
                    "The name of the feature or part being measured "
                    "(e.g., Base, Mounting Hole, Shaft)"
                ),
                "type": _text("Type of dimension (e.g., Length, Width, Radius, Diameter, Angle)"),
                "value": _text("The numeric value found on the drawing (e.g., 50, 12.5, R5, Ø10)"),
                "unit": _text("The unit of measurement (e.g., mm, in, deg)"),
                "notes": _text("Additional context (e.g., 2 places, Typical, Through hole)"),
            },
            "required": ["value", "type"],
        },
        "description": "List of geometric dimensions, focusing on radii and major linear dimensions",
    }

    bom = {
        "type": "array",
        "items": {
            "type": "object",
            "properties": {
                "itemNumber": _text("The item number or reference designation (e.g., 1, 2, A, B)"),
                "partNumber": _text("The specific part number or code"),
                "description": _text("Description of the part or component"),
                "quantity": _text("Quantity required (e.g., 1, 4x, 10)"),
                "material": _text("Material specification (e.g., Steel, Aluminum, PVC)"),
                "remarks": _text("Any additional notes or comments found in the row"),
            },
            "required": ["description", "quantity"],
        },
        "description": "List of items in the Bill of Materials table",
    }

    return {
        "type": "object",
        "properties": {
            "metadata": metadata,
            "dimensions": dimensions,
            "bom": bom,
        },
        "required": ["bom", "dimensions"],
    }


def build_response_format() -> dict[str, Any]:
    """Wrap the extraction schema in a chat-completions `response_format`."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": RESPONSE_FORMAT_NAME,
            # Non-strict: strict mode would force every optional field to be required
            "strict": False,
            "schema": build_extraction_schema(),
        },
    }
