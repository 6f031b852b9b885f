"""
Shared exceptions for drawing extraction.
"""


class ExtractionFailure(Exception):
    """Raised when a drawing extraction attempt fails."""

    pass


class InvalidInput(ExtractionFailure):
    """The selected file is not an image payload the provider can accept."""


class TransportFailure(ExtractionFailure):
    """The provider call errored (network, authentication, quota)."""


class EmptyResponse(ExtractionFailure):
    """The provider answered without a text payload."""


class MalformedResponse(ExtractionFailure):
    """The text payload could not be parsed into an extraction result."""
