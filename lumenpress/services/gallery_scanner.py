"""
Gallery scanner.

Walks galleries/ recursively. A folder is a gallery when it holds at least one
image or a gallery.yaml. Nested folders produce slash-joined slugs
("travel/japan"). Folders with a gallery.yaml but no images also contribute
parent metadata used to order navigation.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from lumenpress.errors import MalformedContent
from lumenpress.schemas import Gallery, ParentMetadata, Photo, ScanWarning
from lumenpress.services.exif import extract_exif
from lumenpress.storage.base import FileEntry, StorageAdapter
from lumenpress.utils.auth import is_password_hash
from lumenpress.utils.front_matter import parse_yaml_document
from lumenpress.utils.text import (
    as_bool,
    as_datetime,
    as_optional_int,
    as_tag_list,
    basename,
    extension,
    folder_name_to_title,
    is_image_file,
    is_variant_file,
    join_path,
    natural_key,
    order_key,
    to_slug,
)

logger = logging.getLogger(__name__)

GALLERIES_DIR = "galleries"
GALLERY_META_FILE = "gallery.yaml"
PHOTOS_META_FILE = "photos.yaml"

# Formats whose EXIF block is worth a full read during a scan
EXIF_EXTENSIONS = {".jpg", ".jpeg"}


@dataclass
class GalleryScanResult:
    galleries: List[Gallery] = field(default_factory=list)
    parents: List[ParentMetadata] = field(default_factory=list)


def _warn(warnings: List[ScanWarning], error: MalformedContent) -> None:
    logger.warning(f"Malformed content at {error.path}: {error.message}")
    warnings.append(ScanWarning(path=error.path or "", message=error.message))


def _slug_path(value: Any) -> Optional[str]:
    """Normalize an explicit slug override, keeping '/' as the nesting separator."""
    if not isinstance(value, str):
        return None
    segments = [to_slug(segment) for segment in value.split("/")]
    segments = [segment for segment in segments if segment]
    return "/".join(segments) or None


def load_gallery_yaml(
    storage: StorageAdapter, folder_path: str, warnings: List[ScanWarning]
) -> Optional[Dict[str, Any]]:
    """
    Read gallery.yaml in `folder_path`.

    Returns the mapping, an empty mapping when the file is malformed (a warning
    is recorded), or None when the file does not exist.
    """
    yaml_path = join_path(folder_path, GALLERY_META_FILE)
    text = storage.get_text(yaml_path)
    if text is None:
        return None
    try:
        data = parse_yaml_document(text, path=yaml_path)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise MalformedContent("gallery.yaml must be a key-value mapping", path=yaml_path)
    except MalformedContent as e:
        _warn(warnings, e)
        return {}
    return data


def load_photos_yaml(
    storage: StorageAdapter, folder_path: str, warnings: List[ScanWarning]
) -> Optional[List[Dict[str, Any]]]:
    """
    Read photos.yaml in `folder_path` as an ordered list of per-photo overrides.

    Accepts a list of `{filename, ...}` entries or a mapping keyed by filename.
    """
    yaml_path = join_path(folder_path, PHOTOS_META_FILE)
    text = storage.get_text(yaml_path)
    if text is None:
        return None
    try:
        data = parse_yaml_document(text, path=yaml_path)
        if data is None:
            return []
        if isinstance(data, dict):
            data = [
                dict(value or {}, filename=str(key))
                for key, value in data.items()
                if value is None or isinstance(value, dict)
            ]
        if not isinstance(data, list):
            raise MalformedContent("photos.yaml must be a list or a mapping", path=yaml_path)
    except MalformedContent as e:
        _warn(warnings, e)
        return None

    entries = []
    for item in data:
        if isinstance(item, dict) and item.get("filename"):
            entries.append(item)
        else:
            logger.warning(f"Skipping photos.yaml entry without a filename in {yaml_path}")
    return entries


def _build_photo(
    storage: StorageAdapter,
    file: FileEntry,
    override: Dict[str, Any],
    extract: bool,
) -> Photo:
    exif = None
    if extract and extension(file.name) in EXIF_EXTENSIONS:
        data = storage.get(file.path)
        if data is not None:
            exif = extract_exif(data)

    # photos.yaml wins over embedded metadata, which wins over the filename
    title = override.get("title")
    description = override.get("description")
    tags = as_tag_list(override.get("tags"))
    if exif:
        title = title or exif.title or exif.description
        description = description or exif.description
        if "tags" not in override:
            tags = list(exif.keywords)

    return Photo(
        id=file.path[len(GALLERIES_DIR) + 1:] if file.path.startswith(GALLERIES_DIR + "/") else file.path,
        filename=file.name,
        path=file.path,
        title=str(title) if title else folder_name_to_title(basename(file.name)),
        description=str(description) if description else "",
        tags=tags,
        hidden=as_bool(override.get("hidden")),
        order=as_optional_int(override.get("order")),
        size=file.size,
        exif=exif,
    )


def _sort_photos(photos: List[Photo], overrides: Optional[List[Dict[str, Any]]]) -> List[Photo]:
    by_name = sorted(photos, key=lambda p: natural_key(p.filename))
    if not overrides:
        return by_name

    # photos.yaml position is the default order; explicit `order` wins
    positions: Dict[str, int] = {}
    for index, entry in enumerate(overrides):
        explicit = as_optional_int(entry.get("order"))
        positions.setdefault(str(entry["filename"]), explicit if explicit is not None else index)
    return sorted(by_name, key=lambda p: order_key(positions.get(p.filename)))


def _resolve_cover(
    meta: Dict[str, Any],
    folder_path: str,
    images: List[FileEntry],
    photos: List[Photo],
    warnings: List[ScanWarning],
) -> Optional[str]:
    explicit = meta.get("cover")
    if explicit:
        name = str(explicit).strip().lstrip("/")
        if name.startswith(folder_path + "/"):
            name = name[len(folder_path) + 1:]
        if any(image.name == name for image in images):
            return join_path(folder_path, name)
        _warn(warnings, MalformedContent(
            f"Cover '{explicit}' is not an image in this gallery",
            path=join_path(folder_path, GALLERY_META_FILE),
        ))

    hidden = {p.filename for p in photos if p.hidden}
    for image in sorted(images, key=lambda f: natural_key(f.name)):
        if image.name not in hidden:
            return image.path
    return None


def _password_hash(
    meta: Dict[str, Any], folder_path: str, warnings: List[ScanWarning]
) -> Tuple[bool, Optional[str]]:
    value = meta.get("password")
    if value is None or value == "":
        return False, None
    if is_password_hash(str(value)):
        return True, str(value)
    # Plaintext is never indexed; the gallery stays locked until a hash is written
    _warn(warnings, MalformedContent(
        "Gallery password must be a bcrypt hash",
        path=join_path(folder_path, GALLERY_META_FILE),
    ))
    return True, None


def _scan_folder(
    storage: StorageAdapter,
    folder: FileEntry,
    derived_slug: str,
    parent_slug: Optional[str],
    result: GalleryScanResult,
    warnings: List[ScanWarning],
    extract: bool,
) -> None:
    entries = storage.list(folder.path)
    images = [
        e for e in entries
        if not e.is_directory and is_image_file(e.name) and not is_variant_file(e.name)
    ]
    meta = load_gallery_yaml(storage, folder.path, warnings)
    effective_slug = derived_slug

    has_meta = meta is not None
    if images or has_meta:
        meta = meta or {}
        overrides = load_photos_yaml(storage, folder.path, warnings)
        override_map = {str(o["filename"]): o for o in overrides or []}
        photos = _sort_photos(
            [_build_photo(storage, image, override_map.get(image.name, {}), extract) for image in images],
            overrides,
        )
        is_protected, password_hash = _password_hash(meta, folder.path, warnings)
        effective_slug = _slug_path(meta.get("slug")) or derived_slug

        tags = as_tag_list(meta.get("tags"))
        if not tags:
            for photo in photos:
                tags.extend(t for t in photo.tags if t not in tags)

        modified = [image.last_modified for image in images if image.last_modified]
        category = meta.get("category")
        if category is None and parent_slug:
            category = parent_slug

        result.galleries.append(Gallery(
            id=derived_slug,
            slug=effective_slug,
            path=folder.path,
            title=str(meta.get("title") or folder_name_to_title(folder.name)),
            description=str(meta.get("description") or ""),
            order=as_optional_int(meta.get("order")),
            hidden=as_bool(meta.get("hidden")),
            private=as_bool(meta.get("private")),
            parent_slug=parent_slug,
            cover_path=_resolve_cover(meta, folder.path, images, photos, warnings),
            photos=photos,
            photo_count=sum(1 for p in photos if not p.hidden),
            tags=tags,
            category=str(category) if category else None,
            date=as_datetime(meta.get("date")) or (max(modified) if modified else None),
            is_protected=is_protected,
            password_hash=password_hash,
            has_custom_metadata=has_meta,
            include_nested_photos=as_bool(meta.get("includeNestedPhotos"), default=True),
        ))

        if not images:
            result.parents.append(ParentMetadata(
                slug=effective_slug,
                title=str(meta["title"]) if meta.get("title") else None,
                order=as_optional_int(meta.get("order")),
            ))

    for child in entries:
        if not child.is_directory:
            continue
        child_segment = to_slug(child.name)
        if not child_segment:
            continue
        _scan_folder(
            storage,
            child,
            f"{effective_slug}/{child_segment}",
            effective_slug,
            result,
            warnings,
            extract,
        )


def scan_galleries(
    storage: StorageAdapter,
    warnings: List[ScanWarning],
    extract_exif_data: bool = True,
) -> GalleryScanResult:
    """
    Scan galleries/ into Gallery entries and parent metadata.

    Galleries are returned in depth-first path order: a folder precedes its
    sub-folders and siblings follow name order. Malformed YAML is recorded in
    `warnings`; storage errors propagate.
    """
    result = GalleryScanResult()
    for entry in storage.list(GALLERIES_DIR):
        if not entry.is_directory:
            continue
        segment = to_slug(entry.name)
        if not segment:
            logger.warning(f"Skipping gallery folder without a usable slug: {entry.path}")
            continue
        _scan_folder(storage, entry, segment, None, result, warnings, extract_exif_data)

    logger.debug(f"Scanned {len(result.galleries)} galleries")
    return result
