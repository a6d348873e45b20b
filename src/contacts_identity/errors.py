from __future__ import annotations


class IdentityError(Exception):
    """Base class for identity-resolution failures."""


class SnapshotValidationError(IdentityError, ValueError):
    """Raised before any write when a portable snapshot is malformed."""


class MergeError(IdentityError, ValueError):
    """Raised when a merge request cannot be honoured."""
