"""
errors.py
---------
Exception hierarchy. Only generation failures are allowed to end a chat request
with an error; retrieval and analytics failures are contained where they happen.
"""
from __future__ import annotations


class FreightAssistantError(Exception):
    """Base class for errors raised by the assistant core."""

    public_message = "An error occurred processing your request"


class GenerationError(FreightAssistantError):
    """The text generation service failed for the current request."""

    public_message = "The assistant could not generate an answer. Please try again shortly."


class ConfigurationError(FreightAssistantError):
    """Settings are missing or inconsistent."""
