from __future__ import annotations

from typing import Optional


class IngestError(Exception):
    """Base class for every failure surfaced by the ingestion pipeline."""

    def __init__(self, message: str, slug: Optional[str] = None) -> None:
        super().__init__(message)
        self.slug = slug


class ValidationError(IngestError):
    """Caller input is unusable (empty upload, wrong extension, bad config)."""


class ExtractionError(IngestError):
    """The archive could not be unpacked."""


class ContentStructureError(IngestError):
    """No single content root with an entry document could be found."""


class StorageError(IngestError):
    """A filesystem operation failed for reasons unrelated to the input."""


class IngestCancelled(IngestError):
    """The caller's cancellation token was set before ingestion finished."""
