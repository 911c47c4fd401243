"""Exceptions raised by the Quire core.

Validation and conflict errors are raised before any side effect happens.
Primary generation errors abort a transformation; secondary (image) failures
never surface here, they are recorded in the note metadata instead.
"""

from __future__ import annotations


class QuireError(Exception):
    """Base class for all Quire core errors."""


class ValidationError(QuireError):
    """Bad request shape, unknown transformation type, or empty source set."""


class ConflictError(QuireError):
    """A note of the requested type already exists and duplicates are disallowed."""


class NotFoundError(QuireError):
    """A notebook, source or note id does not exist."""


class GenerationError(QuireError):
    """Primary text generation failed; no note was persisted."""


class IngestionError(QuireError):
    """Chunking, embedding or storing a source failed."""


class TransformationCancelled(QuireError):
    """The caller's deadline passed or the request was cancelled."""
