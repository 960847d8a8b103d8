"""
Content scanner.

Produces a complete ContentIndex from one traversal of the content root:
galleries/, blog/ and pages/. Parse problems are contained per entry and
reported as warnings; storage failures and slug collisions abort the scan.
"""
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Sequence

from lumenpress.config import Settings
from lumenpress.errors import ContentRootMissing, SlugCollision
from lumenpress.schemas import ContentEntry, ContentIndex, IndexStats, ScanWarning
from lumenpress.services.blog_scanner import scan_posts
from lumenpress.services.gallery_scanner import scan_galleries
from lumenpress.services.page_scanner import scan_pages
from lumenpress.services.tag_indexer import build_tag_index
from lumenpress.storage.base import StorageAdapter

logger = logging.getLogger(__name__)

# Bumped whenever the persisted index shape changes
INDEX_FORMAT_VERSION = 2


def check_unique_slugs(kind: str, entries: Sequence[ContentEntry]) -> None:
    """
    Raise SlugCollision when two entries of one kind share a slug.
    """
    seen: Dict[str, List[str]] = defaultdict(list)
    for entry in entries:
        seen[entry.slug].append(entry.path)
    for slug, paths in seen.items():
        if len(paths) > 1:
            logger.error(f"Duplicate {kind} slug '{slug}': {', '.join(paths)}")
            raise SlugCollision(kind, slug, paths)


def scan_content(
    storage: StorageAdapter,
    excerpt_length: int = 160,
    words_per_minute: int = 200,
    extract_exif_data: bool = True,
) -> ContentIndex:
    """
    Scan the whole content tree into an unversioned ContentIndex.

    Raises:
        ContentRootMissing: The content root does not exist
        SlugCollision: Two galleries, posts or pages resolve to one slug
        StorageUnavailable: The backend failed mid-scan
    """
    if not storage.root_exists():
        raise ContentRootMissing("Content root does not exist", path=storage.describe())

    warnings: List[ScanWarning] = []
    gallery_result = scan_galleries(storage, warnings, extract_exif_data=extract_exif_data)
    posts = scan_posts(
        storage, warnings, excerpt_length=excerpt_length, words_per_minute=words_per_minute
    )
    pages = scan_pages(
        storage, warnings, excerpt_length=excerpt_length, words_per_minute=words_per_minute
    )

    check_unique_slugs("gallery", gallery_result.galleries)
    check_unique_slugs("post", posts)
    check_unique_slugs("page", pages)

    tags = build_tag_index(gallery_result.galleries, posts)
    stats = IndexStats(
        galleries=len(gallery_result.galleries),
        photos=sum(len(g.photos) for g in gallery_result.galleries),
        posts=len(posts),
        pages=len(pages),
        tags=len(tags),
    )

    return ContentIndex(
        format_version=INDEX_FORMAT_VERSION,
        updated_at=datetime.now(timezone.utc),
        galleries=gallery_result.galleries,
        posts=posts,
        pages=pages,
        parents=gallery_result.parents,
        tags=tags,
        stats=stats,
        warnings=warnings,
    )


def scan_with_settings(storage: StorageAdapter, config: Settings) -> ContentIndex:
    return scan_content(
        storage,
        excerpt_length=config.EXCERPT_LENGTH,
        words_per_minute=config.WORDS_PER_MINUTE,
        extract_exif_data=config.EXTRACT_EXIF,
    )
