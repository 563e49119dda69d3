"""
Core business exceptions for the archive acquirer.

This module defines a hierarchy of custom exceptions to allow for granular
error handling and clear separation of failure domains. Configuration errors
are always raised before any file is touched.
"""


class AcquirerError(Exception):
    """Base exception for all component-specific errors."""
    pass


# --- Configuration Errors ---

class ConfigurationError(AcquirerError):
    """Raised for errors related to the shape of an invocation."""
    pass


class UnsupportedDigestError(ConfigurationError):
    """Raised when a digest type has no checksum command."""
    pass


class UnsupportedSchemeError(ConfigurationError):
    """Raised when a URL scheme has no transport."""
    pass


class MissingDigestError(ConfigurationError):
    """Raised when a local-copy source is verified without an inline digest."""
    pass


class InvalidStateError(ConfigurationError):
    """Raised for an ensure value other than 'present' or 'absent'."""
    pass


class DuplicateTargetError(ConfigurationError):
    """Raised when two specs in one batch manage the same file."""
    pass


# --- Infrastructure Errors ---

class InfrastructureError(AcquirerError):
    """Base class for errors related to external systems (network, tools)."""
    pass


class TransportError(InfrastructureError):
    """Raised when a transport fails to fetch a URL."""
    pass


class TransportTimeoutError(TransportError):
    """Raised when a fetch exceeds its timeout and is aborted."""
    pass


class DigestFetchError(InfrastructureError):
    """Raised when the digest file could not be fetched."""
    pass


class CopyError(InfrastructureError):
    """Raised when a local-copy source cannot be copied."""
    pass


class ToolUnavailableError(InfrastructureError):
    """Raised when a required executable is not on PATH."""
    pass


class FilesystemError(InfrastructureError):
    """Raised when a file or directory under the target cannot be managed."""
    pass


# --- Domain/Business Logic Errors ---

class DomainError(AcquirerError):
    """Base class for errors related to business logic failures."""
    pass


class VerificationFailedError(DomainError):
    """Raised when an artifact does not match its digest record."""
    pass


class BatchError(AcquirerError):
    """Raised after a batch run in which one or more downloads failed."""

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = errors or {}
