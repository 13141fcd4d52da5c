"""Custom exception hierarchy for CloudSync."""

from __future__ import annotations


class CloudSyncError(Exception):
    """Base exception for all CloudSync-specific errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(CloudSyncError):
    """Raised when configuration is invalid or missing."""
    pass


class MissingCredentialsError(ConfigurationError):
    """Raised when the base URL or auth token has not been configured."""
    pass


class AuthenticationError(CloudSyncError):
    """Raised when a request lacks a valid bearer token."""
    pass


class ValidationError(CloudSyncError):
    """Base class for request validation errors."""
    pass


class MethodNotAllowedError(ValidationError):
    """Raised for verbs the object gateway does not support."""
    pass


class InvalidKeyError(ValidationError):
    """Raised when an object key is empty or escapes the store root."""
    pass


class RemoteFileNotFoundError(CloudSyncError):
    """Raised when the remote file does not exist."""
    pass


class RevisionMismatchError(CloudSyncError):
    """Raised when the remote file changed since the revision the caller holds."""
    pass


class NoRevisionError(CloudSyncError):
    """Raised when the backend answered successfully without a usable revision."""
    pass


class InvalidDataError(CloudSyncError):
    """Raised when a downloaded payload cannot be decoded as text."""
    pass


class TransportError(CloudSyncError):
    """Raised for any other non-success status or network-level error."""

    def __init__(
        self,
        message: str,
        details: dict[str, str] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class StorageError(CloudSyncError):
    """Raised when object store operations fail."""
    pass


class PreconditionFailedError(StorageError):
    """Raised when a conditional write does not match the current revision."""
    pass


class S3Error(StorageError):
    """Raised when S3 operations fail."""
    pass
