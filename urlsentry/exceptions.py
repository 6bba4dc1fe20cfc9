"""Custom exceptions for the URL security engine."""


class UrlSentryError(Exception):
    """Base exception for urlsentry."""
    pass


class ConfigurationError(UrlSentryError):
    """Raised when a security configuration cannot be built."""
    pass
