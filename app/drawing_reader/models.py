"""
Pydantic models for the drawing extraction service.

Defines the extraction result returned by the provider (title block
metadata, dimensions and bill of materials) and the API response models
for the session state machine.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel


def _stringify_scalar(value: Any) -> Any:
    """Render JSON numbers as text so notation stays a string end to end."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


class _ExtractedModel(BaseModel):
    """Base for provider-produced records: camelCase on the wire, text leaves."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def numbers_as_text(cls, v: Any) -> Any:
        return _stringify_scalar(v)


class _ExtractedRow(_ExtractedModel):
    """A table row whose optional columns fall back to an empty string."""

    @field_validator("*", mode="before")
    @classmethod
    def null_as_blank(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None and not cls.model_fields[info.field_name].is_required():
            return ""
        return v


class DrawingMetadata(_ExtractedModel):
    """Title block readings. Every field is optional."""

    title: str | None = None
    drawing_number: str | None = None
    revision: str | None = None
    date: str | None = None
    drawn_by: str | None = None


class DimensionItem(_ExtractedRow):
    """
    A single annotated measurement on the drawing.

    Attributes:
        feature: Feature or part the dimension points at (inferred).
        type: Kind of dimension, e.g. Radius, Diameter, Length.
        value: Value in the drawing's own notation, e.g. "R5" or "Ø10".
        unit: Unit of measurement.
        notes: Extra context such as "2 places".
    """

    feature: str = ""
    type: str
    value: str
    unit: str = ""
    notes: str = ""


class BOMItem(_ExtractedRow):
    """
    One row of the Bill of Materials table.

    Attributes:
        item_number: Item number or reference designation.
        part_number: Part number or code.
        description: Description of the part.
        quantity: Free-form quantity, e.g. "4x".
        material: Material specification.
        remarks: Any other notes in the row.
    """

    item_number: str = ""
    part_number: str = ""
    description: str
    quantity: str
    material: str = ""
    remarks: str = ""


class ExtractionResult(_ExtractedModel):
    """
    Structured result of one drawing extraction.

    `dimensions` and `bom` are always lists; a missing or null value from
    the provider becomes an empty list.
    """

    metadata: DrawingMetadata = Field(
        default_factory=DrawingMetadata,
        description="Title block information",
    )
    dimensions: list[DimensionItem] = Field(
        default_factory=list,
        description="Dimensions in extraction order",
    )
    bom: list[BOMItem] = Field(
        default_factory=list,
        description="Bill of Materials rows in extraction order",
    )

    @field_validator("metadata", mode="before")
    @classmethod
    def null_metadata(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("dimensions", "bom", mode="before")
    @classmethod
    def null_as_empty_list(cls, v: Any) -> Any:
        return [] if v is None else v


# =============================================================================
# API Models
# =============================================================================


class AppState(str, Enum):
    """States of the extraction state machine."""

    IDLE = "IDLE"
    ANALYZING = "ANALYZING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class SelectedFile(BaseModel):
    """The file currently held by a session."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., description="Original filename")
    mime_type: str = Field(..., description="Declared MIME type")
    size: int = Field(..., ge=0, description="Payload size in bytes")


class SessionStateResponse(BaseModel):
    """Snapshot of a session's state machine."""

    session_id: str = Field(..., description="Session identifier")
    state: AppState = Field(..., description="Current state")
    file: SelectedFile | None = Field(default=None, description="Selected file")
    preview_url: str | None = Field(
        default=None,
        description="URL of the preview for the selected file",
    )
    result: ExtractionResult | None = Field(
        default=None,
        description="Extraction result (SUCCESS only)",
    )
    error_message: str | None = Field(
        default=None,
        description="Human-readable error (ERROR only)",
    )
    generation: int = Field(..., ge=0, description="File selection counter")


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str = Field(..., description="Service status")
    message: str = Field(..., description="Status message")
    version: str = Field(default="1.0.0", description="API version")
