"""
Blog scanner.

Scans blog/ for posts. A post is either a single markdown file
(blog/my-post.md) or a folder holding a main markdown file plus assets
(blog/my-post/index.md).
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from lumenpress.schemas import Post, ScanWarning
from lumenpress.storage.base import FileEntry, StorageAdapter
from lumenpress.utils.front_matter import FrontMatter, MalformedFrontMatter, parse_front_matter
from lumenpress.utils.text import (
    as_bool,
    as_datetime,
    as_optional_int,
    as_tag_list,
    basename,
    calculate_reading_time,
    folder_name_to_title,
    generate_excerpt,
    is_image_file,
    is_markdown_file,
    is_variant_file,
    join_path,
    natural_key,
    to_slug,
)

logger = logging.getLogger(__name__)

BLOG_DIR = "blog"
MAIN_FILE_PRIORITY = ("index.md", "post.md", "readme.md")

_MARKDOWN_IMAGE = re.compile(r"!\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+\"[^\"]*\")?\s*\)")
_HTML_IMAGE = re.compile(r"<img\b[^>]*?\bsrc\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)
_EXTERNAL = re.compile(r"^(?:[a-z][a-z0-9+.-]*:|//|/)", re.IGNORECASE)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def read_document(
    storage: StorageAdapter, path: str, warnings: List[ScanWarning]
) -> Optional[FrontMatter]:
    """
    Read a markdown/HTML document and split its front-matter.

    Malformed front-matter is recorded as a warning and the document falls
    back to an empty metadata block with the best-effort body.
    """
    text = storage.get_text(path)
    if text is None:
        return None
    try:
        return parse_front_matter(text, path=path)
    except MalformedFrontMatter as e:
        logger.warning(f"Malformed front-matter in {path}: {e.message}")
        warnings.append(ScanWarning(path=path, message=e.message))
        return FrontMatter(data={}, body=e.body, present=False)


def find_main_markdown_file(files: List[FileEntry]) -> Optional[FileEntry]:
    """Pick a folder post's main file: index.md, post.md, readme.md, then the first markdown file."""
    markdown = sorted(
        (f for f in files if not f.is_directory and is_markdown_file(f.name)),
        key=lambda f: natural_key(f.name),
    )
    for name in MAIN_FILE_PRIORITY:
        for file in markdown:
            if file.name.lower() == name:
                return file
    return markdown[0] if markdown else None


def extract_body_images(body: str, base_path: str) -> List[str]:
    """
    Image references in markdown or inline HTML, in document order.
    Relative references are resolved against `base_path`.
    """
    found = []
    for match in sorted(
        list(_MARKDOWN_IMAGE.finditer(body)) + list(_HTML_IMAGE.finditer(body)),
        key=lambda m: m.start(),
    ):
        ref = match.group(1).strip()
        if not ref:
            continue
        if not _EXTERNAL.match(ref):
            ref = join_path(base_path, ref[2:] if ref.startswith("./") else ref)
        if ref not in found:
            found.append(ref)
    return found


def build_post(
    document: FrontMatter,
    path: str,
    default_name: str,
    folder_images: List[str],
    base_path: str,
    excerpt_length: int = 160,
    words_per_minute: int = 200,
) -> Post:
    """Assemble a Post from parsed front-matter and path-derived defaults."""
    data: Dict[str, Any] = document.data
    body = document.body

    slug = to_slug(str(data["slug"])) if data.get("slug") else ""
    slug = slug or to_slug(default_name)

    images = list(folder_images)
    for ref in extract_body_images(body, base_path):
        if ref not in images:
            images.append(ref)

    cover = data.get("cover")
    if cover and not _EXTERNAL.match(str(cover)):
        cover = join_path(base_path, str(cover))
    if not cover and folder_images:
        cover = folder_images[0]

    description = str(data.get("description") or "")
    override = data.get("excerpt") or data.get("description")

    return Post(
        id=join_path(BLOG_DIR, slug),
        slug=slug,
        path=path,
        title=str(data.get("title") or folder_name_to_title(default_name)),
        description=description,
        order=as_optional_int(data.get("order")),
        hidden=as_bool(data.get("hidden")),
        date=as_datetime(data.get("date")),
        draft=as_bool(data.get("draft")),
        tags=as_tag_list(data.get("tags")),
        content=body,
        excerpt=generate_excerpt(body, excerpt_length, override=str(override) if override else None),
        reading_time=calculate_reading_time(body, words_per_minute),
        cover=str(cover) if cover else None,
        images=images,
        author=str(data["author"]) if data.get("author") else None,
        has_front_matter=document.present,
    )


def _scan_folder_post(
    storage: StorageAdapter, folder: FileEntry, warnings: List[ScanWarning], **options
) -> Optional[Post]:
    contents = storage.list(folder.path)
    main_file = find_main_markdown_file(contents)
    if main_file is None:
        return None

    document = read_document(storage, main_file.path, warnings)
    if document is None:
        return None

    folder_images = [
        f.path for f in sorted(contents, key=lambda f: natural_key(f.name))
        if not f.is_directory and is_image_file(f.name) and not is_variant_file(f.name)
    ]
    return build_post(document, main_file.path, folder.name, folder_images, folder.path, **options)


def _scan_file_post(
    storage: StorageAdapter, file: FileEntry, warnings: List[ScanWarning], **options
) -> Optional[Post]:
    document = read_document(storage, file.path, warnings)
    if document is None:
        return None
    return build_post(document, file.path, basename(file.name), [], BLOG_DIR, **options)


def sort_posts(posts: List[Post]) -> List[Post]:
    """Newest first; undated posts take the oldest position. Ties break on slug."""
    by_slug = sorted(posts, key=lambda p: p.slug)
    return sorted(by_slug, key=lambda p: p.date or _OLDEST, reverse=True)


def scan_posts(
    storage: StorageAdapter,
    warnings: List[ScanWarning],
    excerpt_length: int = 160,
    words_per_minute: int = 200,
) -> List[Post]:
    """
    Scan blog/ into Post entries sorted by date.

    Drafts are included; public filtering happens at the accessor layer.
    """
    options = {"excerpt_length": excerpt_length, "words_per_minute": words_per_minute}
    posts = []
    for item in storage.list(BLOG_DIR):
        if item.is_directory:
            post = _scan_folder_post(storage, item, warnings, **options)
        elif is_markdown_file(item.name):
            post = _scan_file_post(storage, item, warnings, **options)
        else:
            continue
        if post is not None:
            posts.append(post)

    logger.debug(f"Scanned {len(posts)} posts")
    return sort_posts(posts)
