"""
Cache validator tokens for image responses.

The fingerprint is a CRC-32 of the storage path combined with the byte length.
It detects changes for HTTP revalidation only and is not a security primitive;
gallery passwords use bcrypt in lumenpress.utils.auth.
"""
import zlib
from typing import Optional


def content_fingerprint(path: str, size: int) -> str:
    """
    Deterministic validator for an object at `path` with `size` bytes.

    Returns a quoted strong ETag value, e.g. '"3f2a9c1b-1e240"'.
    """
    checksum = zlib.crc32(path.encode("utf-8")) & 0xFFFFFFFF
    return f'"{checksum:08x}-{size:x}"'


def _normalize(tag: str) -> str:
    tag = tag.strip()
    if tag.startswith("W/"):
        tag = tag[2:]
    return tag


def validator_matches(if_none_match: Optional[str], etag: str) -> bool:
    """
    True when an If-None-Match header value matches `etag`.
    Handles comma-separated lists, weak prefixes and `*`.
    """
    if not if_none_match:
        return False
    target = _normalize(etag)
    for candidate in if_none_match.split(","):
        candidate = _normalize(candidate)
        if candidate == "*" or candidate == target:
            return True
    return False
