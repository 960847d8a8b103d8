"""
Admin write path.

Creates, updates and deletes the backing files of posts, pages and galleries.
Every successful write is followed by an index invalidation (or an immediate
rebuild when configured) so the persisted index never drifts from the tree.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

import yaml

from lumenpress.errors import Forbidden, MalformedContent, NotFound, SlugCollision
from lumenpress.schemas import (
    GalleryMetadataWrite,
    PageWrite,
    PhotoOverridesRequest,
    PostWrite,
)
from lumenpress.services.blog_scanner import BLOG_DIR
from lumenpress.services.content_index import ContentIndexCache
from lumenpress.services.gallery_scanner import GALLERIES_DIR, GALLERY_META_FILE, PHOTOS_META_FILE
from lumenpress.services.image_resolver import DEFAULT_VARIANT_WIDTHS, variant_path
from lumenpress.services.page_scanner import PAGES_DIR
from lumenpress.services.variant_generator import DEFAULT_WEBP_QUALITY, generate_variants
from lumenpress.storage.base import StorageAdapter, normalize_path, parent_path
from lumenpress.utils.auth import hash_password
from lumenpress.utils.front_matter import (
    MalformedFrontMatter,
    parse_front_matter,
    parse_yaml_document,
    render_front_matter,
)
from lumenpress.utils.text import is_image_file, is_variant_file, join_path

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def validate_slug(slug: str, nested: bool = False) -> str:
    """
    Check a URL slug: lower-case letters, digits and single hyphens.
    Gallery slugs may be nested with '/'.

    Raises:
        ValueError: If the slug is not valid
    """
    segments = slug.strip("/").split("/") if nested else [slug]
    if not segments or not all(SLUG_PATTERN.match(segment) for segment in segments):
        raise ValueError("Slug must contain only lowercase letters, numbers and hyphens")
    return "/".join(segments)


def _dump_yaml(data: Any) -> str:
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)


class ContentWriter:
    """
    File-level mutations for the admin layer.

    Args:
        storage: Adapter the content lives in
        cache: Index cache to invalidate or rebuild after each write
        rebuild_after_write: Rebuild immediately instead of invalidating
    """

    def __init__(
        self,
        storage: StorageAdapter,
        cache: ContentIndexCache,
        rebuild_after_write: bool = False,
        variant_widths: Sequence[int] = DEFAULT_VARIANT_WIDTHS,
        generate_variants_on_upload: bool = True,
        webp_quality: int = DEFAULT_WEBP_QUALITY,
    ) -> None:
        self.storage = storage
        self.cache = cache
        self.rebuild_after_write = rebuild_after_write
        self.variant_widths = tuple(variant_widths)
        self.generate_variants_on_upload = generate_variants_on_upload
        self.webp_quality = webp_quality

    def _publish(self, action: str, path: str, **extra: Any) -> Dict[str, Any]:
        if self.rebuild_after_write:
            index = self.cache.rebuild()
            index_state = f"rebuilt (v{index.version})"
        else:
            self.cache.invalidate()
            index_state = "invalidated"
        logger.info(f"{action}: {path} (index {index_state})")
        return {"success": True, "action": action, "path": path, "index": index_state, **extra}

    # Posts ---------------------------------------------------------------------

    def _post_front_matter(self, post: PostWrite) -> Dict[str, Any]:
        return {
            "title": post.title,
            "date": post.date or datetime.now(timezone.utc).date(),
            "description": post.description,
            "excerpt": post.excerpt,
            "tags": post.tags or None,
            "draft": post.draft,
            "cover": post.cover,
            "author": post.author,
        }

    def create_post(self, slug: str, post: PostWrite) -> Dict[str, Any]:
        """
        Create blog/<slug>/index.md.

        Raises:
            SlugCollision: A post with this slug or path already exists
        """
        slug = validate_slug(slug)
        folder = join_path(BLOG_DIR, slug)
        taken = [p for p in (folder, f"{folder}.md") if self.storage.exists(p)]
        taken += [p.path for p in self.cache.get_index().posts if p.slug == slug]
        if taken:
            raise SlugCollision("post", slug, taken)

        path = join_path(folder, "index.md")
        self.storage.create_dir(folder)
        self.storage.put(path, render_front_matter(self._post_front_matter(post), post.body))
        return self._publish("Created post", path, slug=slug)

    def update_post(self, slug: str, post: PostWrite) -> Dict[str, Any]:
        """Rewrite an existing post's main file, keeping front-matter keys the form does not manage."""
        existing = self.cache.get_post(slug, include_drafts=True)
        text = self.storage.get_text(existing.path)
        if text is None:
            raise NotFound(f"Post '{slug}' not found", path=existing.path)

        try:
            data = parse_front_matter(text, path=existing.path).data
        except MalformedFrontMatter as e:
            logger.warning(f"Replacing malformed front-matter in {existing.path}: {e.message}")
            data = {}
        data.update(self._post_front_matter(post))

        self.storage.put(existing.path, render_front_matter(data, post.body))
        return self._publish("Updated post", existing.path, slug=slug)

    def delete_post(self, slug: str) -> Dict[str, Any]:
        """Delete a post file, or its whole folder for folder posts."""
        existing = self.cache.get_post(slug, include_drafts=True)
        folder = parent_path(existing.path)
        if folder != BLOG_DIR:
            self.storage.delete_dir(folder)
            path = folder
        else:
            self.storage.delete(existing.path)
            path = existing.path
        return self._publish("Deleted post", path, slug=slug)

    # Pages ---------------------------------------------------------------------

    def save_page(self, slug: str, page: PageWrite) -> Dict[str, Any]:
        """Create pages/<slug>/index.md or rewrite the existing page file."""
        slug = validate_slug(slug)
        try:
            path = self.cache.get_page(slug, include_drafts=True).path
            text = self.storage.get_text(path) or ""
            try:
                data = parse_front_matter(text, path=path).data
            except MalformedFrontMatter:
                data = {}
        except NotFound:
            path = join_path(PAGES_DIR, slug, "index.md")
            data = {}

        data.update({
            "title": page.title,
            "description": page.description,
            "hidden": page.hidden or None,
            "order": page.order,
            "layout": page.layout,
        })
        self.storage.put(path, render_front_matter(data, page.body))
        return self._publish("Saved page", path, slug=slug)

    def delete_page(self, slug: str) -> Dict[str, Any]:
        existing = self.cache.get_page(slug, include_drafts=True)
        folder = parent_path(existing.path)
        if folder != PAGES_DIR:
            self.storage.delete_dir(folder)
            path = folder
        else:
            self.storage.delete(existing.path)
            path = existing.path
        return self._publish("Deleted page", path, slug=slug)

    # Galleries -------------------------------------------------------------------

    def _gallery_path(self, slug: str, create: bool = False) -> str:
        try:
            return self.cache.get_gallery(slug, include_hidden=True).path
        except NotFound:
            if not create:
                raise
            return join_path(GALLERIES_DIR, validate_slug(slug, nested=True))

    def _read_yaml(self, path: str) -> Any:
        text = self.storage.get_text(path)
        if text is None:
            return None
        try:
            return parse_yaml_document(text, path=path)
        except MalformedContent as e:
            logger.warning(f"Replacing malformed YAML at {path}: {e.message}")
            return None

    def save_gallery_metadata(self, slug: str, metadata: GalleryMetadataWrite) -> Dict[str, Any]:
        """
        Merge fields into gallery.yaml, creating the gallery folder if needed.
        A plaintext password is stored only as a bcrypt hash.
        """
        folder = self._gallery_path(slug, create=True)
        yaml_path = join_path(folder, GALLERY_META_FILE)
        data = self._read_yaml(yaml_path)
        if not isinstance(data, dict):
            data = {}

        updates = metadata.model_dump(exclude_none=True, by_alias=True, exclude={"password", "remove_password"})
        data.update(updates)
        if metadata.remove_password:
            data.pop("password", None)
        elif metadata.password:
            data["password"] = hash_password(metadata.password)

        self.storage.put(yaml_path, _dump_yaml(data), content_type="application/x-yaml")
        return self._publish("Saved gallery metadata", yaml_path, slug=slug)

    def save_photo_overrides(self, slug: str, request: PhotoOverridesRequest) -> Dict[str, Any]:
        """
        Replace photos.yaml with the given per-photo entries, in request order.

        Raises:
            NotFound: The gallery, or a referenced photo, does not exist
        """
        gallery = self.cache.get_gallery(slug, include_hidden=True)
        known = {photo.filename for photo in gallery.photos}
        missing = [p.filename for p in request.photos if p.filename not in known]
        if missing:
            raise NotFound(f"Unknown photo(s): {', '.join(missing)}", path=gallery.path)

        entries: List[Dict[str, Any]] = [p.model_dump(exclude_none=True) for p in request.photos]
        yaml_path = join_path(gallery.path, PHOTOS_META_FILE)
        self.storage.put(yaml_path, _dump_yaml(entries), content_type="application/x-yaml")
        return self._publish("Saved photo overrides", yaml_path, slug=slug, count=len(entries))

    def upload_photo(self, slug: str, filename: str, data: bytes) -> Dict[str, Any]:
        """
        Store an original photo and, when enabled, its WebP variants.

        Raises:
            Forbidden: The filename is not an allowed image or names a variant
        """
        name = normalize_path(filename)
        if "/" in name or not is_image_file(name) or is_variant_file(name):
            logger.warning(f"Rejected upload filename: {filename!r}")
            raise Forbidden("Only original image files can be uploaded", path=filename)

        folder = self._gallery_path(slug, create=True)
        path = join_path(folder, name)
        self.storage.put(path, data)

        variants: List[str] = []
        if self.generate_variants_on_upload:
            for width, variant_bytes in generate_variants(
                data, self.variant_widths, quality=self.webp_quality
            ).items():
                target = variant_path(path, width)
                self.storage.put(target, variant_bytes, content_type="image/webp")
                variants.append(target)

        return self._publish("Uploaded photo", path, slug=slug, variants=variants)

    def delete_photo(self, slug: str, filename: str) -> Dict[str, Any]:
        """Delete an original photo and every variant generated from it."""
        gallery = self.cache.get_gallery(slug, include_hidden=True)
        photo = next((p for p in gallery.photos if p.filename == filename), None)
        if photo is None:
            raise NotFound(f"Photo '{filename}' not found", path=gallery.path)

        self.storage.delete(photo.path)
        for width in self.variant_widths:
            self.storage.delete(variant_path(photo.path, width))
        return self._publish("Deleted photo", photo.path, slug=slug)

    def delete_gallery(self, slug: str) -> Dict[str, Any]:
        """Delete a gallery folder, including nested galleries inside it."""
        folder = self._gallery_path(slug)
        self.storage.delete_dir(folder)
        return self._publish("Deleted gallery", folder, slug=slug)

