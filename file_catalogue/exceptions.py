"""
Custom exception hierarchy for the file catalogue.

Component errors (hashing, classification, metadata) are caught by the
scanner and degraded to sentinel values; database and reconciliation errors
propagate to the command line and abort the run.
"""


class FileCatalogueError(Exception):
    """Base exception for all file catalogue errors."""
    pass


class ConfigurationError(FileCatalogueError):
    """Raised when run configuration is invalid (e.g. unknown digest method)."""
    pass


class ClassificationError(FileCatalogueError):
    """Raised when a type classification backend fails."""
    pass


class MetadataExtractionError(FileCatalogueError):
    """Raised when metadata cannot be extracted from a file."""
    pass


class DatabaseError(FileCatalogueError):
    """Raised when database operations fail."""
    pass


class CatalogueNotFoundError(DatabaseError):
    """Raised when a catalogue file is missing or unreadable."""
    pass


class ReadOnlyCatalogueError(DatabaseError):
    """Raised when a write is attempted through a read-only handle."""
    pass


class MergeError(DatabaseError):
    """Raised when catalogues cannot be merged (e.g. overlapping paths)."""
    pass


class DuplicateVerificationError(FileCatalogueError):
    """Raised when a duplicate group has no readable baseline file."""
    pass
