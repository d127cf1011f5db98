"""Custom exceptions for the s3util application."""


class S3UtilError(Exception):
    """Base exception for all application-specific errors."""

    pass


class ConfigError(S3UtilError):
    """Raised for configuration-related issues."""

    pass


class UsageError(S3UtilError):
    """Raised when the tool is invoked with invalid arguments."""

    pass


class AmbiguousDirectionError(UsageError):
    """Raised when neither or both paths are storage URIs."""

    pass


class PlanError(S3UtilError):
    """Raised when the set of transfer jobs cannot be fully determined."""

    pass


class TransferError(S3UtilError):
    """Raised when a single file transfer fails."""

    pass


class FatalError(S3UtilError):
    """Raised for unrecoverable conditions, like a storage client that cannot be built."""

    pass
