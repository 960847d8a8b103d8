"""
Image variant generation.
Produces the resized WebP copies (`<name>_<width>w.webp`) served by the image resolver.
"""
import io
import logging
from typing import Dict, Sequence

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

# WebP conversion settings
DEFAULT_WEBP_QUALITY = 85  # Balance between quality and file size (0-100)
DEFAULT_WEBP_METHOD = 6    # Compression method (0-6, higher = better compression but slower)


def _prepare_mode(image: Image.Image) -> Image.Image:
    # WebP supports transparency, so keep alpha channels
    if image.mode == 'P':
        return image.convert('RGBA')
    if image.mode in ('RGB', 'RGBA', 'LA'):
        return image
    if image.mode not in ('CMYK', 'L'):
        logger.warning(f"Unusual image mode '{image.mode}', converting to RGB")
    return image.convert('RGB')


def generate_variants(
    image_bytes: bytes,
    widths: Sequence[int],
    quality: int = DEFAULT_WEBP_QUALITY,
    method: int = DEFAULT_WEBP_METHOD,
) -> Dict[int, bytes]:
    """
    Resize an image to each width narrower than the original and encode as WebP.

    Args:
        image_bytes: Original image file bytes
        widths: Target widths in pixels
        quality: WebP quality (0-100, default: 85)
        method: WebP compression method (0-6, default: 6)

    Returns:
        Mapping of width to WebP bytes. Widths at or above the original width
        are skipped; the original is served for those. An unreadable image
        yields an empty mapping.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as opened:
            # Apply EXIF orientation before resizing
            image = _prepare_mode(ImageOps.exif_transpose(opened))
            original_width, original_height = image.size

            variants: Dict[int, bytes] = {}
            for width in sorted(set(widths)):
                if width <= 0 or width >= original_width:
                    continue
                height = max(1, round(original_height * (width / original_width)))
                resized = image.resize((width, height), Image.Resampling.LANCZOS)

                buffer = io.BytesIO()
                save_kwargs = {
                    'format': 'WEBP',
                    'quality': quality,
                    'method': method,
                }
                if quality == 100:
                    save_kwargs['lossless'] = True
                resized.save(buffer, **save_kwargs)
                variants[width] = buffer.getvalue()

    except UnidentifiedImageError as e:
        logger.warning(f"Cannot identify image format: {str(e)}")
        return {}
    except (OSError, ValueError) as e:
        logger.error(f"Error generating WebP variants: {str(e)}", exc_info=True)
        return {}

    logger.info(
        f"Generated {len(variants)} WebP variant(s) from {original_width}x{original_height} image "
        f"(quality={quality})"
    )
    return variants
