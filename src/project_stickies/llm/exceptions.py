"""Exceptions for model provider access."""


class LLMError(Exception):
    """Base exception for model provider operations."""


class ProviderError(LLMError):
    """Raised when no model provider is usable or every provider call fails."""
