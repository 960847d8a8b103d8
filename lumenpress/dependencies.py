"""
FastAPI dependencies wiring the engine to request handlers.

The storage adapter is process-wide (it may hold a reusable S3 client);
cache, resolver and writer objects are cheap and built per request, so no
index state outlives a request.
"""
from fastapi import Depends

from lumenpress.config import settings
from lumenpress.services.content_index import ContentIndexCache
from lumenpress.services.content_writer import ContentWriter
from lumenpress.services.image_resolver import ImageResolver
from lumenpress.storage.base import StorageAdapter
from lumenpress.storage.factory import get_storage


def get_cache(storage: StorageAdapter = Depends(get_storage)) -> ContentIndexCache:
    return ContentIndexCache.from_settings(storage, settings)


def get_image_resolver(storage: StorageAdapter = Depends(get_storage)) -> ImageResolver:
    return ImageResolver(storage, widths=settings.VARIANT_WIDTHS)


def get_writer(
    storage: StorageAdapter = Depends(get_storage),
    cache: ContentIndexCache = Depends(get_cache),
) -> ContentWriter:
    return ContentWriter(
        storage,
        cache,
        rebuild_after_write=settings.REBUILD_AFTER_WRITE,
        variant_widths=settings.VARIANT_WIDTHS,
        generate_variants_on_upload=settings.GENERATE_VARIANTS,
        webp_quality=settings.WEBP_QUALITY,
    )
