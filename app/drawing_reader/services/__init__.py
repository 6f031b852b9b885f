"""
Services package for the drawing extraction application.

Contains:
- extraction: OpenAI integration for reading engineering drawings
- preview: Transient preview storage for uploaded images
"""

from .extraction import ExtractionService
from .preview import PreviewStore

__all__ = ["ExtractionService", "PreviewStore"]
