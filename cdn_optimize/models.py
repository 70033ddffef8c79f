"""Data models for the CDN image optimizer.

Contains data classes for transformation requests, resolved transforms,
origin objects, and configuration sections.
"""

from dataclasses import dataclass
from typing import Literal, Optional

# Device class inferred from the User-Agent
DeviceClass = Literal["mobile", "tablet", "desktop"]

# Connection quality inferred from client hints
ConnectionClass = Literal["slow", "moderate", "fast"]

DEFAULT_QUALITY = 80


@dataclass(frozen=True)
class TransformRequest:
    """Transformation intent parsed from query parameters.

    Attributes:
        storage_key: Origin object key (e.g. "{user_id}/{image_id}")
        return_original: Bypass all transformation
        format: Requested format: original|webp|jpeg|png (others kept verbatim)
        quality: Requested encode quality (not clamped)
        width: Optional max width bound
        height: Optional max height bound
        auto_optimize: Enable device/connection heuristics
    """
    storage_key: str = ""
    return_original: bool = False
    format: str = "original"
    quality: int = DEFAULT_QUALITY
    width: Optional[int] = None
    height: Optional[int] = None
    auto_optimize: bool = False


@dataclass(frozen=True)
class EffectiveTransform:
    """Parameters actually applied to the source image.

    Attributes:
        format: Target format after auto-optimization
        quality: Target quality after auto-optimization
        width: Max width bound, or None for unconstrained
        height: Max height bound, or None for unconstrained
        original: Return the source bytes untouched
        device: Device class the request was classified as
        connection: Connection class the request was classified as
    """
    format: str = "original"
    quality: int = DEFAULT_QUALITY
    width: Optional[int] = None
    height: Optional[int] = None
    original: bool = False
    device: DeviceClass = "desktop"
    connection: ConnectionClass = "fast"

    @property
    def resizes(self) -> bool:
        return self.width is not None or self.height is not None


@dataclass(frozen=True)
class OriginObject:
    """Bytes fetched from the origin store.

    Attributes:
        data: Raw object content
        content_type: Declared (or guessed) content type
    """
    data: bytes
    content_type: str


@dataclass
class TransformResult:
    """Output of the transform executor.

    Attributes:
        data: Output bytes
        content_type: Content type matching the encode branch
        dimensions: Output (width, height), None when the source was passed through
        transformed: False when the source bytes were returned untouched
    """
    data: bytes
    content_type: str
    dimensions: Optional[tuple[int, int]] = None
    transformed: bool = True


@dataclass
class R2Config:
    """Cloudflare R2 configuration.

    Attributes:
        account_id: Cloudflare account ID
        access_key_id: R2 access key ID
        secret_access_key: R2 secret access key
        bucket_name: R2 bucket holding the original images
    """
    account_id: str
    access_key_id: str
    secret_access_key: str
    bucket_name: str


@dataclass
class OriginConfig:
    """Origin fetch configuration.

    Attributes:
        public_url: Public base URL of the bucket (used when no R2 credentials are set)
        timeout: Fetch timeout in seconds
    """
    public_url: Optional[str] = None
    timeout: float = 10.0


@dataclass
class ServerConfig:
    """HTTP server configuration.

    Attributes:
        host: Bind address
        port: Bind port
        cache_max_age: max-age for the Cache-Control header, in seconds
        immutable: Append "immutable" to Cache-Control
        diagnostic_headers: Emit X-Device-Type/X-Connection-Type/size headers
        max_image_pixels: Pillow decompression bomb limit
        log_level: Logging level name
    """
    host: str = "0.0.0.0"
    port: int = 3001
    cache_max_age: int = 31536000
    immutable: bool = True
    diagnostic_headers: bool = True
    max_image_pixels: int = 89478485
    log_level: str = "INFO"

    @property
    def cache_control(self) -> str:
        value = f"public, max-age={self.cache_max_age}"
        if self.immutable:
            value += ", immutable"
        return value
