"""Storage key utilities for the CDN image optimizer.

Handles storage key normalization, content type guessing from key
extensions, and content hash calculation for ETags.
"""

import hashlib
from pathlib import PurePosixPath

from .errors import NotFound

CONTENT_TYPES = {
    '.webp': 'image/webp',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
    '.avif': 'image/avif',
    '.svg': 'image/svg+xml',
}

DEFAULT_CONTENT_TYPE = 'application/octet-stream'


def calculate_hash(data: bytes) -> str:
    """Calculate SHA-256 hash and return first 16 characters.

    Args:
        data: Content as bytes

    Returns:
        First 16 characters of hex-encoded SHA-256 hash
    """
    return hashlib.sha256(data).hexdigest()[:16]


def build_etag(data: bytes) -> str:
    """Build a strong ETag value for response bytes."""
    return f'"{calculate_hash(data)}"'


def normalize_key(key: str) -> str:
    """Normalize a storage key taken from a request path.

    Collapses repeated slashes and strips leading/trailing ones.

    Args:
        key: Raw key (e.g. "user1//image1/")

    Returns:
        Normalized key (e.g. "user1/image1")

    Raises:
        NotFound: If the key is empty or contains "." or ".." segments
    """
    parts = [part for part in key.split('/') if part]

    if not parts:
        raise NotFound("Empty storage key")
    if any(part in {'.', '..'} for part in parts):
        raise NotFound(f"Invalid storage key: {key}")

    return '/'.join(parts)


def build_object_key(user_id: str, image_id: str) -> str:
    """Build the object key for a user's image.

    Args:
        user_id: Owner identifier
        image_id: Image identifier

    Returns:
        Object key (e.g. user1/img1)
    """
    return normalize_key(f"{user_id}/{image_id}")


def guess_content_type(key: str) -> str:
    """Guess a content type from the key extension.

    Args:
        key: Object key

    Returns:
        Content type, application/octet-stream when unknown
    """
    suffix = PurePosixPath(key).suffix.lower()
    return CONTENT_TYPES.get(suffix, DEFAULT_CONTENT_TYPE)
