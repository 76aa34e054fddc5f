"""
Custom exception hierarchy for releases-watcher.

Per-item failures (one file, one artist) are logged and skipped by the
pipelines; per-call failures propagate up to the command line layer.
"""


class ReleasesWatcherError(Exception):
    """Base class for all application-specific errors."""
    pass


class ConfigurationError(ReleasesWatcherError):
    """Raised when there are configuration-related issues."""
    pass


class TagParseError(ReleasesWatcherError):
    """Raised when an audio file cannot be opened or its tags decoded."""

    def __init__(self, file_path: str, reason: str = None):
        self.file_path = file_path
        self.reason = reason

        message = f"Failed to read tags from file: {file_path}"
        if reason:
            message += f" - {reason}"

        super().__init__(message)


class CatalogError(ReleasesWatcherError):
    """Base class for errors while resolving releases in an external catalog."""
    pass


class ArtistNotFoundError(CatalogError):
    """Raised when an artist search returns no results."""

    def __init__(self, artist: str, catalog: str = None):
        self.artist = artist
        self.catalog = catalog

        message = f"Artist '{artist}' not found"
        if catalog:
            message += f" in {catalog}"

        super().__init__(message)


class APICommunicationError(CatalogError):
    """Raised for network or API status issues."""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)


class StorageError(ReleasesWatcherError):
    """Raised when the persistent store fails."""

    def __init__(self, operation: str, reason: str = None):
        self.operation = operation
        self.reason = reason

        message = f"Storage operation '{operation}' failed"
        if reason:
            message += f": {reason}"

        super().__init__(message)


class CacheError(ReleasesWatcherError):
    """Raised when a cached value cannot be stored or decoded."""

    def __init__(self, entity: str, entity_id: str, reason: str = None):
        self.entity = entity
        self.entity_id = entity_id
        self.reason = reason

        message = f"Cache failure for {entity}/{entity_id}"
        if reason:
            message += f": {reason}"

        super().__init__(message)


class UnknownKindError(ReleasesWatcherError):
    """Raised when a release kind string has no matching Kind value."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Unknown release kind {value!r}")


class SettingsError(ReleasesWatcherError):
    """Raised when artist settings cannot be read or parsed."""
    pass


class ReportingError(ReleasesWatcherError):
    """Raised when the report cannot be written."""
    pass


class ScanError(ReleasesWatcherError):
    """Raised when the library root cannot be walked."""

    def __init__(self, path: str, reason: str = None):
        self.path = path
        self.reason = reason

        message = f"Cannot scan directory: {path}"
        if reason:
            message += f" - {reason}"

        super().__init__(message)
