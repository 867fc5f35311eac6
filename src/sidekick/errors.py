"""Application-level exception types for sidekick."""

from __future__ import annotations


class SidekickError(Exception):
    """Base exception for sidekick."""


class ConfigurationError(SidekickError):
    """Base exception for configuration and startup validation errors."""


class ApiKeyNotConfiguredError(ConfigurationError):
    """Raised when an API key is required but missing."""


class UnknownPromptTemplateError(ConfigurationError):
    """Raised when a loop config names a render template that is not registered."""


class MissingContextError(SidekickError):
    """Raised when a tool is invoked without the request context it requires."""


class CancellationRequestedError(SidekickError):
    """Raised when the caller cancelled the running delegation."""
