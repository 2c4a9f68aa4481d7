"""
Custom exception hierarchy for the photo indexer.

Only DatabaseError is meant to escape a group's reconciliation; the others
are caught at the seam that knows how to degrade (probe, grouper, indexer).
"""


class PhotoIndexerError(Exception):
    """Base exception for all photo indexer errors."""
    pass


class FileHashError(PhotoIndexerError):
    """Raised when file hashing fails."""
    pass


class MetadataExtractionError(PhotoIndexerError):
    """Raised when a single metadata facet cannot be extracted from a file."""
    pass


class NotAPhotoError(PhotoIndexerError):
    """Raised when a group candidate is not a supported photo type."""
    pass


class DatabaseError(PhotoIndexerError):
    """Raised when a catalog write fails. Aborts only the current group."""
    pass
