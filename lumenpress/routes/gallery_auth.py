"""
Gallery unlock route for password-protected galleries.
Session handling (cookies, tokens) belongs to the presentation layer; this
endpoint only verifies the password and returns the unlocked gallery.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
import logging

from lumenpress.dependencies import get_cache
from lumenpress.schemas import Gallery, GalleryUnlockRequest
from lumenpress.services.content_index import ContentIndexCache, public_gallery
from lumenpress.utils.rate_limit import RATE_LIMITS, limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/galleries/{slug:path}/unlock", response_model=Gallery)
@limiter.limit(RATE_LIMITS["unlock"])
def unlock_gallery(
    request: Request,
    slug: str,
    body: GalleryUnlockRequest,
    cache: ContentIndexCache = Depends(get_cache),
):
    """
    Verify a gallery password.

    Returns:
        Gallery: The gallery with its visible photos

    Raises:
        HTTPException: 401 if the password is wrong
    """
    if not cache.verify_gallery_password(slug, body.password):
        logger.warning(f"Failed unlock attempt for gallery '{slug}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Invalid password", "message": "Gallery password is incorrect"}
        )

    logger.info(f"Gallery '{slug}' unlocked")
    return public_gallery(cache.get_gallery(slug, include_hidden=True), unlocked=True)
