"""
Content index cache.

The index lives in the same storage as the content, as one JSON blob at a
well-known root path (default `_content-index.json`). Two small marker
objects sit beside it:

- `<name>.invalid`: written by invalidate(). While present, the blob is stale.
- `<name>.building`: a lease written while a rebuild runs. A reader that finds
  a stale blob and a fresh lease serves the stale blob instead of starting a
  second scan.

All writes are whole-object replacements, so a reader never sees a partial
blob. Concurrent rebuilds are allowed; the last write wins.
"""
import json
import logging
import posixpath
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from lumenpress.config import Settings, settings as default_settings
from lumenpress.errors import ContentRootMissing, NotFound
from lumenpress.schemas import ContentIndex, Gallery, NavNode, Page, Post
from lumenpress.services.content_scanner import INDEX_FORMAT_VERSION, scan_content, scan_with_settings
from lumenpress.services.navigation import build_navigation
from lumenpress.storage.base import StorageAdapter
from lumenpress.utils.auth import verify_password

logger = logging.getLogger(__name__)

Scanner = Callable[[StorageAdapter], ContentIndex]


class ContentIndexCache:
    """
    Persisted, versioned content index over a storage adapter.

    Holds no index state in memory between calls; every read goes through
    the adapter so independent processes share one cache.
    """

    def __init__(
        self,
        storage: StorageAdapter,
        index_path: str = "_content-index.json",
        lease_seconds: int = 60,
        scanner: Optional[Scanner] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.index_path = index_path
        stem, _ = posixpath.splitext(index_path)
        self.invalid_marker_path = f"{stem}.invalid"
        self.building_marker_path = f"{stem}.building"
        self.lease_seconds = lease_seconds
        self.scanner = scanner or scan_content
        self.clock = clock

    @classmethod
    def from_settings(cls, storage: StorageAdapter, config: Optional[Settings] = None) -> "ContentIndexCache":
        config = config or default_settings
        return cls(
            storage,
            index_path=config.INDEX_PATH,
            lease_seconds=config.REBUILD_LEASE_SECONDS,
            scanner=lambda adapter: scan_with_settings(adapter, config),
        )

    # Persistence ---------------------------------------------------------------

    def read_persisted(self) -> Optional[ContentIndex]:
        """
        The stored index, or None when absent, unparseable or of another format version.
        """
        text = self.storage.get_text(self.index_path)
        if text is None:
            return None
        try:
            index = ContentIndex.model_validate_json(text)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable content index at {self.index_path}: {e.error_count()} error(s)")
            return None
        if index.format_version != INDEX_FORMAT_VERSION:
            logger.info(
                f"Content index format {index.format_version} != {INDEX_FORMAT_VERSION}, needs rebuild"
            )
            return None
        return index

    def _write_index(self, index: ContentIndex) -> None:
        payload = index.model_dump_json(indent=2, context={"include_secrets": True})
        self.storage.put(self.index_path, payload, content_type="application/json")

    def _read_marker(self, path: str) -> Optional[Dict[str, Any]]:
        text = self.storage.get_text(path)
        if text is None:
            return None
        try:
            data = json.loads(text)
        except ValueError:
            # Unreadable marker still counts as present
            return {}
        return data if isinstance(data, dict) else {}

    def _write_marker(self, path: str) -> str:
        token = uuid.uuid4().hex
        self.storage.put(
            path,
            json.dumps({"token": token, "at": self.clock()}),
            content_type="application/json",
        )
        return token

    def _lease_active(self) -> bool:
        marker = self._read_marker(self.building_marker_path)
        if marker is None:
            return False
        started = marker.get("at")
        if not isinstance(started, (int, float)):
            return False
        return self.clock() - started < self.lease_seconds

    # Public operations ---------------------------------------------------------

    def is_invalidated(self) -> bool:
        return self._read_marker(self.invalid_marker_path) is not None

    def get_index(self) -> ContentIndex:
        """
        Return the current index, rebuilding when none is stored or it was invalidated.

        While another invocation holds a fresh rebuild lease, an invalidated
        index is served as-is.
        """
        index = self.read_persisted()
        if index is not None and not self.is_invalidated():
            return index

        if index is not None and self._lease_active():
            logger.info(f"Serving stale content index v{index.version} while a rebuild is in progress")
            return index

        reason = "missing" if index is None else "invalidated"
        logger.info(f"Content index {reason}, rebuilding")
        return self._rebuild(previous=index)

    def invalidate(self) -> None:
        """
        Mark the stored index stale. Does not scan; the next get_index() rebuilds.
        Repeated calls leave the same state as one call.
        """
        self._write_marker(self.invalid_marker_path)
        logger.info("Content index invalidated")

    def rebuild(self) -> ContentIndex:
        """Scan now regardless of cache state, persist and return the new index."""
        logger.info("Content index rebuild requested")
        return self._rebuild(previous=self.read_persisted())

    def _rebuild(self, previous: Optional[ContentIndex]) -> ContentIndex:
        started = time.perf_counter()
        # Checked before any marker write so a missing root is never created
        if not self.storage.root_exists():
            raise ContentRootMissing("Content root does not exist", path=self.storage.describe())
        invalid_before = self._read_marker(self.invalid_marker_path)
        lease_token = self._write_marker(self.building_marker_path)
        try:
            index = self.scanner(self.storage)
            index.version = (previous.version if previous else 0) + 1
            self._write_index(index)

            # Clear the stale flag only if nobody invalidated again during the scan
            invalid_after = self._read_marker(self.invalid_marker_path)
            if invalid_after is not None and invalid_after == invalid_before:
                self.storage.delete(self.invalid_marker_path)
            elif invalid_after is not None:
                logger.info("Content index invalidated during rebuild, keeping it marked stale")
        except Exception:
            logger.error("Content index rebuild failed, previous index left in place")
            raise
        finally:
            lease = self._read_marker(self.building_marker_path)
            if lease is not None and lease.get("token") == lease_token:
                self.storage.delete(self.building_marker_path)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"Content index v{index.version} rebuilt in {elapsed_ms}ms: "
            f"{index.stats.galleries} galleries, {index.stats.photos} photos, "
            f"{index.stats.posts} posts, {index.stats.pages} pages, "
            f"{len(index.warnings)} warning(s)"
        )
        return index

    # Per-kind accessors ------------------------------------------------------

    def public_index(self) -> ContentIndex:
        """
        The index as the public sees it: private and hidden galleries, drafts and
        hidden pages removed, protected galleries without photos, no scan warnings.
        """
        index = self.get_index()
        return index.model_copy(update={
            "galleries": [public_gallery(g) for g in index.galleries if not g.private and not g.hidden],
            "posts": [p for p in index.posts if not p.draft and not p.hidden],
            "pages": [p for p in index.pages if not p.hidden and not p.draft],
            "warnings": [],
        })

    def list_galleries(self, include_private: bool = False) -> List[Gallery]:
        galleries = self.get_index().galleries
        if include_private:
            return galleries
        return [public_gallery(g) for g in galleries if not g.private and not g.hidden]

    def get_gallery(self, slug: str, include_hidden: bool = False) -> Gallery:
        for gallery in self.get_index().galleries:
            if gallery.slug == slug:
                return gallery if include_hidden else public_gallery(gallery)
        raise NotFound(f"Gallery '{slug}' not found")

    def list_posts(self, include_drafts: bool = False) -> List[Post]:
        posts = self.get_index().posts
        if include_drafts:
            return posts
        return [p for p in posts if not p.draft and not p.hidden]

    def get_post(self, slug: str, include_drafts: bool = False) -> Post:
        for post in self.get_index().posts:
            if post.slug == slug and (include_drafts or not post.draft):
                return post
        raise NotFound(f"Post '{slug}' not found")

    def list_pages(self, include_hidden: bool = False) -> List[Page]:
        pages = self.get_index().pages
        if include_hidden:
            return pages
        return [p for p in pages if not p.hidden and not p.draft]

    def get_page(self, slug: str, include_drafts: bool = False) -> Page:
        for page in self.get_index().pages:
            if page.slug == slug and (include_drafts or not page.draft):
                return page
        raise NotFound(f"Page '{slug}' not found")

    def get_tags(self) -> Dict[str, int]:
        return self.get_index().tags

    def get_navigation(self) -> List[NavNode]:
        index = self.get_index()
        return build_navigation(
            [g for g in index.galleries if not g.private and not g.hidden],
            index.parents,
        )

    def verify_gallery_password(self, slug: str, password: str) -> bool:
        """
        Check `password` against the gallery's stored bcrypt hash.
        Unprotected galleries always verify; a protected gallery without a usable hash never does.
        """
        gallery = self.get_gallery(slug, include_hidden=True)
        if not gallery.is_protected:
            return True
        if not gallery.password_hash:
            logger.warning(f"Gallery '{slug}' is protected but has no usable password hash")
            return False
        return verify_password(password, gallery.password_hash)


def public_gallery(gallery: Gallery, unlocked: bool = False) -> Gallery:
    """
    Public view of a gallery: hidden photos removed, and no photos at all for a
    protected gallery that has not been unlocked.
    """
    if gallery.is_protected and not unlocked:
        photos = []
    else:
        photos = [p for p in gallery.photos if not p.hidden]
    return gallery.model_copy(update={"photos": photos})
