"""
Error taxonomy for the modpack hub.

Every failure surfaced by the core carries a machine-readable ``kind`` and an
HTTP status code so the API layer can render it without knowing about the
individual error types.
"""

from __future__ import annotations


class ModpackHubError(Exception):
    """Base class for all errors raised by the ingestion pipeline and store."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def kind(self) -> str:
        return type(self).__name__


class ArchiveCorrupt(ModpackHubError):
    """The uploaded bytes are not a readable zip container."""

    status_code = 422


class ManifestMissing(ModpackHubError):
    """The archive has no manifest entry at the expected path."""

    status_code = 422


class ManifestMalformed(ModpackHubError):
    """The manifest entry exists but is not a valid manifest document."""

    status_code = 422


class Conflict(ModpackHubError):
    """A record with the same filename already exists."""

    status_code = 409


class NotFound(ModpackHubError):
    """No record exists for the requested filename."""

    status_code = 404


class IOFailure(ModpackHubError):
    """Reading or writing the metadata document or content directory failed."""

    status_code = 500


class InvalidFilename(ModpackHubError):
    """The archive filename cannot be used as a key in the content directory."""

    status_code = 400


class ArchiveTooLarge(ModpackHubError):
    """The upload exceeds the configured size limit."""

    status_code = 413
