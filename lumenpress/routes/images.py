"""
Image serving routes.
Streams originals or pre-generated variants from storage with long-lived caching.
"""
from fastapi import APIRouter, Depends, Header, Query, Response, status
from typing import Optional
import logging

from lumenpress.dependencies import get_image_resolver
from lumenpress.services.image_resolver import ImageResolver

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/images/{path:path}")
def get_image(
    path: str,
    w: Optional[int] = Query(None, ge=1, le=10000, description="Requested display width in pixels"),
    if_none_match: Optional[str] = Header(None, alias="If-None-Match"),
    resolver: ImageResolver = Depends(get_image_resolver),
):
    """
    Serve an image by storage path.

    With `w`, the closest pre-generated WebP variant is served when present,
    otherwise the original. A matching If-None-Match returns 304 with no body.

    Raises:
        Forbidden (403): Path is not an image or escapes the content root
        NotFound (404): No variant and no original
    """
    result = resolver.resolve(path, width=w, if_none_match=if_none_match)
    headers = {
        "ETag": result.etag,
        "Cache-Control": result.cache_control,
    }

    if result.not_modified:
        logger.debug(f"Image not modified: {result.path}")
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)

    return Response(content=result.body, media_type=result.content_type, headers=headers)
