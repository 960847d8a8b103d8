"""
CMS API routes with password authentication.
All endpoints require password authentication via header. Every write is
paired with an index invalidation inside the content writer.
"""
from fastapi import APIRouter, Depends, File, Header, HTTPException, Request, UploadFile, status
from starlette.concurrency import run_in_threadpool
from typing import Any, Dict, List, Optional
import logging
import time

from lumenpress.dependencies import get_cache, get_writer
from lumenpress.schemas import (
    ContentIndex,
    GalleryMetadataWrite,
    IndexActionRequest,
    IndexActionResponse,
    PageWrite,
    PhotoOverridesRequest,
    PostWrite,
)
from lumenpress.services.content_index import ContentIndexCache
from lumenpress.services.content_writer import ContentWriter
from lumenpress.utils.auth import verify_admin_password
from lumenpress.utils.rate_limit import RATE_LIMITS, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cms", tags=["CMS"])


def verify_cms_password(
    x_cms_password: Optional[str] = Header(None, alias="X-CMS-Password", description="CMS admin password")
) -> bool:
    """
    FastAPI dependency for CMS password authentication.

    Args:
        x_cms_password: Password provided in request header (X-CMS-Password)

    Returns:
        True if authenticated

    Raises:
        HTTPException: 401 if password is invalid or missing
    """
    if not x_cms_password:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Missing password", "message": "CMS access requires password authentication"}
        )

    try:
        if not verify_admin_password(x_cms_password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error": "Invalid password", "message": "CMS access denied"}
            )
    except ValueError as e:
        # ADMIN_PASSWORD_HASH not configured
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Authentication not configured", "message": str(e)}
        )

    return True


def _bad_request(e: ValueError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "Invalid request", "detail": str(e)}
    )


# =============================================================================
# Content index
# =============================================================================

@router.get("/content-index", response_model=ContentIndex)
def get_cms_content_index(
    cache: ContentIndexCache = Depends(get_cache),
    authenticated: bool = Depends(verify_cms_password)
):
    """
    Get the full content index for the CMS dashboard.
    Includes private galleries, drafts, hidden pages and scan warnings.
    """
    return cache.get_index()


@router.post("/content-index", response_model=IndexActionResponse)
def manage_content_index(
    body: IndexActionRequest,
    cache: ContentIndexCache = Depends(get_cache),
    authenticated: bool = Depends(verify_cms_password)
):
    """
    Rebuild or invalidate the content index.

    Args:
        body: {"action": "rebuild"} or {"action": "invalidate"}

    Returns:
        IndexActionResponse: Rebuild stats, or confirmation of the invalidation
    """
    if body.action == "invalidate":
        cache.invalidate()
        return IndexActionResponse(
            success=True,
            message="Content index invalidated; it will be rebuilt on the next read",
        )

    started = time.perf_counter()
    index = cache.rebuild()
    return IndexActionResponse(
        success=True,
        message=f"Content index rebuilt (v{index.version})",
        version=index.version,
        updated_at=index.updated_at,
        stats=index.stats,
        warnings=index.warnings,
        rebuild_ms=int((time.perf_counter() - started) * 1000),
    )


# =============================================================================
# Posts
# =============================================================================

@router.post("/posts/{slug}", status_code=status.HTTP_201_CREATED)
def create_post(
    slug: str,
    body: PostWrite,
    writer: ContentWriter = Depends(get_writer),
    authenticated: bool = Depends(verify_cms_password)
) -> Dict[str, Any]:
    """
    Create a blog post at blog/<slug>/index.md.

    Raises:
        HTTPException: 400 if the slug is invalid
        SlugCollision (409): A post with this slug already exists
    """
    try:
        return writer.create_post(slug, body)
    except ValueError as e:
        raise _bad_request(e)


@router.put("/posts/{slug}")
def update_post(
    slug: str,
    body: PostWrite,
    writer: ContentWriter = Depends(get_writer),
    authenticated: bool = Depends(verify_cms_password)
) -> Dict[str, Any]:
    """Update an existing post's front-matter and body."""
    return writer.update_post(slug, body)


@router.delete("/posts/{slug}")
def delete_post(
    slug: str,
    writer: ContentWriter = Depends(get_writer),
    authenticated: bool = Depends(verify_cms_password)
) -> Dict[str, Any]:
    return writer.delete_post(slug)


# =============================================================================
# Pages
# =============================================================================

@router.put("/pages/{slug}")
def save_page(
    slug: str,
    body: PageWrite,
    writer: ContentWriter = Depends(get_writer),
    authenticated: bool = Depends(verify_cms_password)
) -> Dict[str, Any]:
    """Create or update a static page."""
    try:
        return writer.save_page(slug, body)
    except ValueError as e:
        raise _bad_request(e)


@router.delete("/pages/{slug}")
def delete_page(
    slug: str,
    writer: ContentWriter = Depends(get_writer),
    authenticated: bool = Depends(verify_cms_password)
) -> Dict[str, Any]:
    return writer.delete_page(slug)


# =============================================================================
# Galleries
# =============================================================================

@router.put("/galleries/{slug:path}/metadata")
def save_gallery_metadata(
    slug: str,
    body: GalleryMetadataWrite,
    writer: ContentWriter = Depends(get_writer),
    authenticated: bool = Depends(verify_cms_password)
) -> Dict[str, Any]:
    """
    Write gallery.yaml overrides. Creates the gallery folder when it does not exist yet.
    A `password` is stored as a bcrypt hash.
    """
    try:
        return writer.save_gallery_metadata(slug, body)
    except ValueError as e:
        raise _bad_request(e)


@router.put("/galleries/{slug:path}/photos")
def save_photo_overrides(
    slug: str,
    body: PhotoOverridesRequest,
    writer: ContentWriter = Depends(get_writer),
    authenticated: bool = Depends(verify_cms_password)
) -> Dict[str, Any]:
    """Replace photos.yaml (per-photo title, description, tags, hidden, order)."""
    return writer.save_photo_overrides(slug, body)


@router.post("/galleries/{slug:path}/photos", status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["upload"])
async def upload_photos(
    request: Request,
    slug: str,
    files: List[UploadFile] = File(...),
    writer: ContentWriter = Depends(get_writer),
    authenticated: bool = Depends(verify_cms_password)
) -> Dict[str, Any]:
    """
    Upload one or more original photos into a gallery.
    WebP variants are generated server-side when GENERATE_VARIANTS is enabled.

    Raises:
        HTTPException: 400 if no files or a non-image file is provided
    """
    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "No files provided", "detail": "At least one image file is required"}
        )

    # Validate all files first
    for i, file in enumerate(files):
        if not file.content_type or not file.content_type.startswith('image/') or not file.filename:
            filename = file.filename or f'file_{i}'
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error": "Invalid file type", "detail": f"File '{filename}' is not a valid image file"}
            )

    uploaded = []
    for file in files:
        data = await file.read()
        try:
            result = await run_in_threadpool(writer.upload_photo, slug, file.filename, data)
        except ValueError as e:
            raise _bad_request(e)
        uploaded.append(result)

    logger.info(f"Successfully uploaded {len(uploaded)} photo(s) to gallery '{slug}'")
    return {"success": True, "uploaded": uploaded}


@router.delete("/galleries/{slug:path}/photos/{filename}")
def delete_photo(
    slug: str,
    filename: str,
    writer: ContentWriter = Depends(get_writer),
    authenticated: bool = Depends(verify_cms_password)
) -> Dict[str, Any]:
    """Delete a photo and its generated variants."""
    return writer.delete_photo(slug, filename)


@router.delete("/galleries/{slug:path}")
def delete_gallery(
    slug: str,
    writer: ContentWriter = Depends(get_writer),
    authenticated: bool = Depends(verify_cms_password)
) -> Dict[str, Any]:
    """Delete a gallery folder and everything in it."""
    return writer.delete_gallery(slug)
