"""
Naming, slug and text helpers shared by the scanners.
"""
import math
import re
import unicodedata
from datetime import date, datetime, time, timezone
from typing import Any, List, Optional

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".avif"}
MARKDOWN_EXTENSIONS = {".md", ".mdx"}
HTML_EXTENSIONS = {".html", ".htm"}

# photo.jpg -> photo_800w.webp
_VARIANT_PATTERN = re.compile(r"_\d+w\.webp$", re.IGNORECASE)
_NATURAL_SPLIT = re.compile(r"(\d+)")


def extension(filename: str) -> str:
    """Lower-case extension including the dot, or an empty string."""
    name = filename.rsplit("/", 1)[-1]
    dot = name.rfind(".")
    return name[dot:].lower() if dot > 0 else ""


def basename(filename: str) -> str:
    """Filename without its extension."""
    name = filename.rsplit("/", 1)[-1]
    dot = name.rfind(".")
    return name[:dot] if dot > 0 else name


def is_image_file(filename: str) -> bool:
    return extension(filename) in IMAGE_EXTENSIONS


def is_variant_file(filename: str) -> bool:
    return bool(_VARIANT_PATTERN.search(filename))


def is_markdown_file(filename: str) -> bool:
    return extension(filename) in MARKDOWN_EXTENSIONS


def is_html_file(filename: str) -> bool:
    return extension(filename) in HTML_EXTENSIONS


def folder_name_to_title(name: str) -> str:
    """
    Convert a folder or file name to a display title.

    "tokyo-2024" -> "Tokyo 2024", "street_photography" -> "Street Photography"
    """
    spaced = re.sub(r"[-_]+", " ", name).strip()
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)


def to_slug(text: str) -> str:
    """
    Convert text to a URL-safe slug.

    "Tokyo 2024!" -> "tokyo-2024", "Café" -> "cafe"
    """
    normalized = unicodedata.normalize("NFKD", text)
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    return re.sub(r"[^a-z0-9]+", "-", ascii_text).strip("-")


def natural_key(value: str) -> List[Any]:
    """Sort key that orders "img2" before "img10"."""
    parts = _NATURAL_SPLIT.split(value.lower())
    return [int(p) if p.isdigit() else p for p in parts]


def order_key(order: Optional[int]) -> tuple:
    """Entries with an explicit order come first, ascending; the rest keep their relative order."""
    return (0, order) if order is not None else (1, 0)


def word_count(text: str) -> int:
    return len(text.split())


def calculate_reading_time(text: str, words_per_minute: int = 200) -> int:
    """Minutes to read `text`, rounded up. Empty text reads in zero minutes."""
    words = word_count(text)
    if words == 0:
        return 0
    return max(1, math.ceil(words / words_per_minute))


def strip_markdown(text: str) -> str:
    """Reduce markdown to plain text for excerpts."""
    plain = re.sub(r"```[\s\S]*?```", "", text)
    plain = re.sub(r"!\[[^\]]*\]\([^)]*\)", "", plain)
    plain = re.sub(r"\[([^\]]+)\]\([^)]*\)", r"\1", plain)
    plain = re.sub(r"^#{1,6}\s+", "", plain, flags=re.MULTILINE)
    plain = re.sub(r"\*\*([^*]+)\*\*", r"\1", plain)
    plain = re.sub(r"\*([^*]+)\*", r"\1", plain)
    plain = re.sub(r"__([^_]+)__", r"\1", plain)
    plain = re.sub(r"`([^`]+)`", r"\1", plain)
    plain = re.sub(r"<[^>]+>", "", plain)
    return plain


def first_paragraph(text: str) -> str:
    """First non-empty block of text once markup is stripped."""
    for block in re.split(r"\n\s*\n", strip_markdown(text)):
        flattened = " ".join(block.split())
        if flattened:
            return flattened
    return ""


def truncate(text: str, max_length: int) -> str:
    """Cut at a word boundary and append an ellipsis when over `max_length`."""
    if len(text) <= max_length:
        return text
    cut = text[:max_length]
    space = cut.rfind(" ")
    if space > 0:
        cut = cut[:space]
    return cut.rstrip(" ,;:.") + "…"


def generate_excerpt(content: str, max_length: int = 160, override: Optional[str] = None) -> str:
    """Explicit override or the first paragraph, capped at `max_length` characters."""
    source = " ".join(override.split()) if override else first_paragraph(content)
    return truncate(source, max_length)


def as_datetime(value: Any) -> Optional[datetime]:
    """
    Coerce a YAML scalar to an aware UTC datetime.
    Returns None for anything that is not a recognizable date.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def as_tag_list(value: Any) -> List[str]:
    """
    Normalize a tags field to a list of stripped strings, first occurrence wins.
    Case is preserved: "Travel" and "travel" stay distinct.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        items = [value]
    tags: List[str] = []
    for item in items:
        if item is None:
            continue
        tag = str(item).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def as_optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "on")
    return bool(value)


def join_path(*parts: str) -> str:
    """Join slash-separated storage paths, skipping empty parts."""
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))
