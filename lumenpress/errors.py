"""
Error taxonomy for the content engine.

NotFound and Forbidden are routine request outcomes. MalformedContent is
contained inside a scan and surfaces only as a warning on the index.
StorageUnavailable and SlugCollision abort a rebuild and leave the previous
persisted index untouched.
"""
from typing import Optional


class ContentError(Exception):
    """Base class for every error raised by the engine."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} ({self.path})"
        return self.message


class NotFound(ContentError):
    """Missing content entry or image."""


class Forbidden(ContentError):
    """Disallowed file type or path."""


class MalformedContent(ContentError):
    """Front-matter or YAML override that cannot be parsed."""


class StorageUnavailable(ContentError):
    """Backend unreachable, misconfigured or denying access. Never retried by the adapter."""


class ContentRootMissing(StorageUnavailable):
    """The configured content root does not exist, so there is nothing to index."""


class SlugCollision(ContentError):
    """Two entries of the same kind resolve to the same slug."""

    def __init__(self, kind: str, slug: str, paths: list):
        self.kind = kind
        self.slug = slug
        self.paths = list(paths)
        super().__init__(
            f"Duplicate {kind} slug '{slug}' for paths: {', '.join(self.paths)}",
            path=self.paths[-1] if self.paths else None,
        )


class ConfigurationError(ContentError):
    """Invalid settings, e.g. the S3 backend forced without a bucket."""
