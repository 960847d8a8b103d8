"""
Page scanner.

Scans pages/ for static pages (About, Contact). A page is a single markdown or
HTML file, or a folder whose main file is index.html, index.md, the first HTML
file or the first markdown file, in that order. A folder may carry custom CSS
in style.css or styles.css.
"""
import logging
from typing import List, Optional, Tuple

from lumenpress.schemas import Page, ScanWarning
from lumenpress.services.blog_scanner import extract_body_images, read_document
from lumenpress.storage.base import FileEntry, StorageAdapter
from lumenpress.utils.front_matter import FrontMatter
from lumenpress.utils.text import (
    as_bool,
    as_optional_int,
    basename,
    calculate_reading_time,
    folder_name_to_title,
    generate_excerpt,
    is_html_file,
    is_image_file,
    is_markdown_file,
    is_variant_file,
    join_path,
    natural_key,
    strip_markdown,
    to_slug,
)

logger = logging.getLogger(__name__)

PAGES_DIR = "pages"
CSS_FILES = ("style.css", "styles.css")


def find_main_page_file(files: List[FileEntry]) -> Tuple[Optional[FileEntry], bool]:
    """Return (main file, is_html) for a page folder."""
    candidates = sorted((f for f in files if not f.is_directory), key=lambda f: natural_key(f.name))
    html = [f for f in candidates if is_html_file(f.name)]
    markdown = [f for f in candidates if is_markdown_file(f.name)]

    for file in html:
        if file.name.lower() == "index.html":
            return file, True
    for file in markdown:
        if file.name.lower() == "index.md":
            return file, False
    if html:
        return html[0], True
    if markdown:
        return markdown[0], False
    return None, False


def build_page(
    document: FrontMatter,
    path: str,
    default_name: str,
    is_html: bool,
    base_path: str,
    custom_css: Optional[str] = None,
    folder_images: Optional[List[str]] = None,
    excerpt_length: int = 160,
    words_per_minute: int = 200,
) -> Page:
    data = document.data
    body = document.body.strip()
    slug = to_slug(default_name)

    images = list(folder_images or [])
    for ref in extract_body_images(body, base_path):
        if ref not in images:
            images.append(ref)

    cover = data.get("cover")
    override = data.get("excerpt") or data.get("description")

    return Page(
        id=join_path(PAGES_DIR, slug),
        slug=slug,
        path=path,
        title=str(data.get("title") or folder_name_to_title(default_name)),
        description=str(data.get("description") or ""),
        order=as_optional_int(data.get("order")),
        hidden=as_bool(data.get("hidden")),
        draft=as_bool(data.get("draft")),
        content=body,
        excerpt=generate_excerpt(body, excerpt_length, override=str(override) if override else None),
        reading_time=calculate_reading_time(strip_markdown(body) if is_html else body, words_per_minute),
        cover=join_path(base_path, str(cover)) if cover else (images[0] if images else None),
        images=images,
        is_html=is_html,
        custom_css=custom_css,
        layout=str(data["layout"]) if data.get("layout") else None,
        has_front_matter=document.present,
    )


def _scan_folder_page(
    storage: StorageAdapter, folder: FileEntry, warnings: List[ScanWarning], **options
) -> Optional[Page]:
    contents = storage.list(folder.path)
    main_file, is_html = find_main_page_file(contents)
    if main_file is None:
        return None

    document = read_document(storage, main_file.path, warnings)
    if document is None:
        return None

    custom_css = None
    names = {f.name for f in contents if not f.is_directory}
    for css_name in CSS_FILES:
        if css_name in names:
            custom_css = storage.get_text(join_path(folder.path, css_name))
            break

    folder_images = [
        f.path for f in sorted(contents, key=lambda f: natural_key(f.name))
        if not f.is_directory and is_image_file(f.name) and not is_variant_file(f.name)
    ]
    return build_page(
        document, main_file.path, folder.name, is_html, folder.path,
        custom_css=custom_css, folder_images=folder_images, **options
    )


def scan_pages(
    storage: StorageAdapter,
    warnings: List[ScanWarning],
    excerpt_length: int = 160,
    words_per_minute: int = 200,
) -> List[Page]:
    """Scan pages/ into Page entries ordered by slug."""
    options = {"excerpt_length": excerpt_length, "words_per_minute": words_per_minute}
    pages = []
    for item in storage.list(PAGES_DIR):
        if item.is_directory:
            page = _scan_folder_page(storage, item, warnings, **options)
        elif is_markdown_file(item.name) or is_html_file(item.name):
            document = read_document(storage, item.path, warnings)
            page = None
            if document is not None:
                page = build_page(
                    document, item.path, basename(item.name), is_html_file(item.name), PAGES_DIR, **options
                )
        else:
            continue
        if page is not None:
            pages.append(page)

    logger.debug(f"Scanned {len(pages)} pages")
    return sorted(pages, key=lambda p: p.slug)
