"""
Image variant resolver.

Maps a logical image path plus an optional width to a stored object:
the pre-generated WebP variant (`photo_800w.webp`) when it exists, else the
original. Responses carry a path+size validator for conditional requests.
"""
import logging
import posixpath
from dataclasses import dataclass
from typing import Optional, Sequence

from lumenpress.errors import Forbidden, NotFound
from lumenpress.storage.base import StorageAdapter, normalize_path
from lumenpress.utils.fingerprint import content_fingerprint, validator_matches
from lumenpress.utils.text import basename, extension, is_image_file

logger = logging.getLogger(__name__)

DEFAULT_VARIANT_WIDTHS = (400, 800, 1200, 1600)
VARIANT_FORMAT = "webp"
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".avif": "image/avif",
}


@dataclass
class ImageResult:
    """Resolved image. `body` is None for a not-modified result."""
    path: str
    content_type: str
    etag: str
    cache_control: str = IMMUTABLE_CACHE_CONTROL
    body: Optional[bytes] = None
    not_modified: bool = False

    @property
    def status_code(self) -> int:
        return 304 if self.not_modified else 200


def content_type_for(path: str) -> str:
    return CONTENT_TYPES.get(extension(path), "application/octet-stream")


def snap_width(width: int, widths: Sequence[int] = DEFAULT_VARIANT_WIDTHS) -> int:
    """Smallest configured width that covers `width`, or the largest one."""
    ordered = sorted(widths)
    for candidate in ordered:
        if candidate >= width:
            return candidate
    return ordered[-1]


def variant_path(path: str, width: int) -> str:
    """galleries/tokyo/shrine.jpg, 800 -> galleries/tokyo/shrine_800w.webp"""
    directory = posixpath.dirname(path)
    name = f"{basename(path)}_{width}w.{VARIANT_FORMAT}"
    return f"{directory}/{name}" if directory else name


class ImageResolver:
    def __init__(self, storage: StorageAdapter, widths: Sequence[int] = DEFAULT_VARIANT_WIDTHS) -> None:
        self.storage = storage
        self.widths = tuple(sorted(widths)) or DEFAULT_VARIANT_WIDTHS

    def resolve(
        self,
        path: str,
        width: Optional[int] = None,
        if_none_match: Optional[str] = None,
    ) -> ImageResult:
        """
        Resolve `path` to image bytes or a not-modified result.

        Raises:
            Forbidden: Path escapes the root or does not name an image
            NotFound: Neither the variant nor the original exists
        """
        try:
            rel = normalize_path(path)
        except Forbidden:
            logger.warning(f"Rejected image path: {path!r}")
            raise
        if not rel or not is_image_file(rel):
            logger.warning(f"Rejected non-image request: {path!r}")
            raise Forbidden("Only image files can be served", path=path)

        candidates = []
        if width and width > 0:
            candidates.append(variant_path(rel, snap_width(width, self.widths)))
        candidates.append(rel)

        for candidate in candidates:
            entry = self.storage.stat(candidate)
            if entry is None:
                continue
            etag = content_fingerprint(candidate, entry.size)
            if validator_matches(if_none_match, etag):
                return ImageResult(
                    path=candidate,
                    content_type=content_type_for(candidate),
                    etag=etag,
                    not_modified=True,
                )
            body = self.storage.get(candidate)
            if body is None:
                # Deleted between stat and read
                continue
            return ImageResult(
                path=candidate,
                content_type=content_type_for(candidate),
                etag=etag,
                body=body,
            )

        raise NotFound("Image not found", path=rel)
