# tests/conftest.py
"""Shared fixtures: a local content root, image bytes and a ready cache."""
import io
from pathlib import Path

import pytest
from PIL import ExifTags, Image

from lumenpress.services.content_index import ContentIndexCache
from lumenpress.storage.local_adapter import LocalStorageAdapter


def jpeg_bytes(width: int = 32, height: int = 24, color=(200, 80, 40), **tags) -> bytes:
    """
    Encode a small JPEG. Keyword arguments name IFD0 EXIF tags
    (e.g. Make="Canon", DateTime="2024:03:01 10:00:00").
    """
    image = Image.new("RGB", (width, height), color)
    buffer = io.BytesIO()
    if tags:
        exif = Image.Exif()
        for name, value in tags.items():
            exif[getattr(ExifTags.Base, name)] = value
        image.save(buffer, format="JPEG", exif=exif)
    else:
        image.save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    root = tmp_path / "content"
    root.mkdir()
    return root


@pytest.fixture
def storage(content_root: Path) -> LocalStorageAdapter:
    return LocalStorageAdapter(content_root)


@pytest.fixture
def cache(storage: LocalStorageAdapter) -> ContentIndexCache:
    return ContentIndexCache(storage)


@pytest.fixture
def make_jpeg():
    return jpeg_bytes


@pytest.fixture
def sample_site(storage: LocalStorageAdapter) -> LocalStorageAdapter:
    """
    A small site:

        galleries/tokyo-2024/      two photos + gallery.yaml
        galleries/travel/japan/    nested gallery under a plain folder
        blog/first-post.md         single-file post
        blog/trip/index.md         folder post with an image
        pages/about/index.md       folder page
    """
    storage.put("galleries/tokyo-2024/b.jpg", jpeg_bytes())
    storage.put("galleries/tokyo-2024/a.jpg", jpeg_bytes())
    storage.put(
        "galleries/tokyo-2024/gallery.yaml",
        "title: Tokyo 2024\norder: 2\ntags: [travel, japan]\n",
    )
    storage.put("galleries/travel/japan/kyoto.jpg", jpeg_bytes())
    storage.put(
        "blog/first-post.md",
        "---\ntitle: First Post\ndate: 2024-01-10\ntags: [travel]\n---\n\nHello world from the first post.\n",
    )
    storage.put(
        "blog/trip/index.md",
        "---\ntitle: The Trip\ndate: 2024-02-01\n---\n\nWe went places.\n\n![view](view.jpg)\n",
    )
    storage.put("blog/trip/view.jpg", jpeg_bytes())
    storage.put("pages/about/index.md", "---\ntitle: About Me\n---\n\nI take photos.\n")
    return storage
