"""
Public content routes.
Read-only views over the content index for the presentation layer.
"""
from fastapi import APIRouter, Depends
from typing import Dict, List
import logging

from lumenpress.dependencies import get_cache
from lumenpress.schemas import ContentIndex, Gallery, NavNode, Page, Post
from lumenpress.services.content_index import ContentIndexCache

logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()


@router.get("/content-index", response_model=ContentIndex)
def get_public_content_index(cache: ContentIndexCache = Depends(get_cache)):
    """Get the public content index."""
    return cache.public_index()


@router.get("/galleries", response_model=List[Gallery])
def list_galleries(cache: ContentIndexCache = Depends(get_cache)):
    """List public galleries in scan order."""
    return cache.list_galleries()


@router.get("/galleries/{slug:path}", response_model=Gallery)
def get_gallery(slug: str, cache: ContentIndexCache = Depends(get_cache)):
    """
    Get a single gallery by slug. Nested slugs contain '/'.
    Private galleries are reachable by direct link; they are only left out of listings.
    """
    return cache.get_gallery(slug)


@router.get("/posts", response_model=List[Post])
def list_posts(cache: ContentIndexCache = Depends(get_cache)):
    """List published posts, newest first."""
    return cache.list_posts()


@router.get("/posts/{slug}", response_model=Post)
def get_post(slug: str, cache: ContentIndexCache = Depends(get_cache)):
    return cache.get_post(slug)


@router.get("/pages", response_model=List[Page])
def list_pages(cache: ContentIndexCache = Depends(get_cache)):
    return cache.list_pages()


@router.get("/pages/{slug}", response_model=Page)
def get_page(slug: str, cache: ContentIndexCache = Depends(get_cache)):
    return cache.get_page(slug)


@router.get("/tags", response_model=Dict[str, int])
def get_tags(cache: ContentIndexCache = Depends(get_cache)):
    """Tag occurrence counts across public galleries and published posts."""
    return cache.get_tags()


@router.get("/navigation", response_model=List[NavNode])
def get_navigation(cache: ContentIndexCache = Depends(get_cache)):
    """Ordered gallery navigation tree."""
    return cache.get_navigation()
