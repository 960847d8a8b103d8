"""
EXIF metadata extraction.
Best-effort: any failure yields absent fields, never an exception.
"""
import io
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from PIL import ExifTags, Image, IptcImagePlugin, UnidentifiedImageError

from lumenpress.schemas import ExifData

logger = logging.getLogger(__name__)

EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

# IPTC application record datasets
IPTC_OBJECT_NAME = (2, 5)
IPTC_KEYWORDS = (2, 25)
IPTC_CAPTION = (2, 120)


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value).strip().strip("\x00").strip()
    return text or None


def _xp_text(value: Any) -> Optional[str]:
    """Windows XP* tags hold UTF-16LE text, read back as bytes or a tuple of byte values."""
    if isinstance(value, (tuple, list)):
        try:
            value = bytes(value)
        except (TypeError, ValueError):
            return None
    if isinstance(value, bytes):
        value = value.decode("utf-16-le", errors="ignore")
    return _clean_text(value)


def split_keywords(value: Any) -> List[str]:
    """Keyword lists come as a sequence or as one string separated by ';' or ','."""
    if value is None:
        return []
    if isinstance(value, (bytes, str)):
        text = _clean_text(value) or ""
        items = text.replace(";", ",").split(",")
    else:
        items = [_clean_text(item) or "" for item in value]
    keywords: List[str] = []
    for item in items:
        item = item.strip()
        if item and item not in keywords:
            keywords.append(item)
    return keywords


def gps_to_degrees(value: Any, ref: Any) -> Optional[float]:
    """
    Convert an EXIF (degrees, minutes, seconds) triple to signed decimal degrees.
    South and west references give negative values.
    """
    if not isinstance(value, (tuple, list)) or not value:
        return None
    parts = [_to_float(part) for part in value[:3]]
    if any(part is None for part in parts):
        return None
    parts += [0.0] * (3 - len(parts))
    degrees = parts[0] + parts[1] / 60 + parts[2] / 3600
    if (_clean_text(ref) or "").upper() in ("S", "W"):
        degrees = -degrees
    return round(degrees, 6)


def _read_iptc(image: Image.Image) -> Dict[Any, Any]:
    try:
        return IptcImagePlugin.getiptcinfo(image) or {}
    except (SyntaxError, ValueError, IndexError, OSError) as e:
        logger.debug(f"Cannot read IPTC data: {str(e)}")
        return {}


def _to_float(value: Any) -> Optional[float]:
    try:
        result = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    return round(result, 4)


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, (tuple, list)):
        value = value[0] if value else None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _format_exposure(value: Any) -> Optional[str]:
    seconds = _to_float(value)
    if not seconds or seconds <= 0:
        return None
    if seconds < 1:
        return f"1/{round(1 / seconds)}"
    return f"{seconds:g}"


def _parse_date(value: Any) -> Optional[datetime]:
    text = _clean_text(value)
    if not text:
        return None
    try:
        # EXIF carries no zone; treat capture time as UTC
        return datetime.strptime(text[:19], EXIF_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def extract_exif(image_bytes: bytes) -> Optional[ExifData]:
    """
    Extract capture date, camera, dimensions, title, keywords and GPS position.

    Args:
        image_bytes: Original image file bytes

    Returns:
        ExifData with whatever could be read, or None if the image cannot be opened
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            width, height = image.size
            exif = image.getexif()
            exif_ifd = exif.get_ifd(ExifTags.IFD.Exif) if exif else {}
            gps_ifd = exif.get_ifd(ExifTags.IFD.GPSInfo) if exif else {}
            iptc = _read_iptc(image)
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
        logger.debug(f"Cannot read EXIF data: {str(e)}")
        return None

    base = ExifTags.Base
    gps = ExifTags.GPS
    description = _clean_text(exif.get(base.ImageDescription)) or _clean_text(iptc.get(IPTC_CAPTION))
    title = _xp_text(exif.get(base.XPTitle)) or _clean_text(iptc.get(IPTC_OBJECT_NAME))
    keywords = split_keywords(iptc.get(IPTC_KEYWORDS)) or split_keywords(_xp_text(exif.get(base.XPKeywords)))
    latitude = gps_to_degrees(gps_ifd.get(gps.GPSLatitude), gps_ifd.get(gps.GPSLatitudeRef))
    longitude = gps_to_degrees(gps_ifd.get(gps.GPSLongitude), gps_ifd.get(gps.GPSLongitudeRef))
    if latitude is None or longitude is None:
        latitude = longitude = None

    return ExifData(
        date_taken=_parse_date(exif_ifd.get(base.DateTimeOriginal) or exif.get(base.DateTime)),
        make=_clean_text(exif.get(base.Make)),
        model=_clean_text(exif.get(base.Model)),
        lens_model=_clean_text(exif_ifd.get(base.LensModel)),
        focal_length=_to_float(exif_ifd.get(base.FocalLength)),
        aperture=_to_float(exif_ifd.get(base.FNumber)),
        iso=_to_int(exif_ifd.get(base.ISOSpeedRatings)),
        exposure_time=_format_exposure(exif_ifd.get(base.ExposureTime)),
        width=width,
        height=height,
        description=description,
        title=title,
        keywords=keywords,
        artist=_clean_text(exif.get(base.Artist)) or _xp_text(exif.get(base.XPAuthor)),
        copyright=_clean_text(exif.get(base.Copyright)),
        latitude=latitude,
        longitude=longitude,
    )
