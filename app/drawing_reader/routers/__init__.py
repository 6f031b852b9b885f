"""
Routers package for FastAPI endpoints.

Organized by domain:
- extract: Stateless one-shot extraction
- sessions: Session state machine (upload, poll, reset, preview)
"""

from . import extract, sessions

__all__ = ["extract", "sessions"]
