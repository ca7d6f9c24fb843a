"""Utilities for testing Gemini clients."""

from .cert import self_signed_certificate
from .server import GeminiServer, Route, response

__all__ = [
    "GeminiServer",
    "Route",
    "response",
    "self_signed_certificate",
]
