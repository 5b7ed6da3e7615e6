"""Custom exceptions for the snapshot installer."""
from enum import Enum


class ErrorKind(Enum):
    """Failure classes surfaced in a step report."""
    CONFIG_MISSING = "config_missing"
    CONNECTION_FAILED = "connection_failed"
    EXTRACTION_FAILED = "extraction_failed"
    COPY_FAILED = "copy_failed"
    STATEMENT_FAILED = "statement_failed"
    MALFORMED_DUMP = "malformed_dump"
    UNEXPECTED = "unexpected"


class InstallerError(Exception):
    """Base class for installer errors."""
    # Subclasses pin the failure class reported back to the operator
    kind = ErrorKind.UNEXPECTED


class ConfigError(InstallerError):
    """Configuration error."""
    # Raised when there are issues with configuration loading or validation
    # e.g., missing config file, invalid values, or required fields missing
    kind = ErrorKind.CONFIG_MISSING


class DatabaseError(InstallerError):
    """Database operation error."""
    # Wraps underlying driver exceptions with contextual information
    kind = ErrorKind.CONNECTION_FAILED


class StorageError(InstallerError):
    """Storage operation error."""
    # Raised when file operations fail
    # e.g., permission issues, disk full, or missing directories
    kind = ErrorKind.COPY_FAILED


class ExtractionFailed(InstallerError):
    """Archive could not be opened or unpacked."""
    kind = ErrorKind.EXTRACTION_FAILED


class SessionError(InstallerError):
    """Override session could not be read or written."""
    pass
