"""
Drawing Reader Backend Application.

A FastAPI service that extracts title block metadata, dimensions and
Bill of Materials rows from engineering drawing images using AI
(OpenAI GPT-4.1 vision).
"""

__version__ = "1.0.0"
