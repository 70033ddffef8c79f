"""Image transformation for the CDN image optimizer.

Decodes the source once, resizes with a fit-inside/no-enlargement policy,
and re-encodes to WebP, JPEG or PNG. The Pillow-specific work lives behind
PillowCodec so the executor only sees decode/resize/encode.
"""

import io
import logging
from typing import Optional, Protocol

from PIL import Image, UnidentifiedImageError

from .errors import NotFound, ProcessingFailure
from .models import EffectiveTransform, TransformResult

logger = logging.getLogger(__name__)

# Encode branches: format name -> (Pillow format, content type)
ENCODERS = {
    "webp": ("WEBP", "image/webp"),
    "jpeg": ("JPEG", "image/jpeg"),
    "png": ("PNG", "image/png"),
}

# PNG is lossless: quality has no meaning there, always use max compression
PNG_COMPRESS_LEVEL = 9
PNG_MODES = ('1', 'L', 'LA', 'I', 'I;16', 'P', 'RGB', 'RGBA')

MIN_QUALITY = 1
MAX_QUALITY = 100


class Codec(Protocol):
    def decode(self, data: bytes) -> Image.Image: ...

    def resize(
        self,
        image: Image.Image,
        width: Optional[int],
        height: Optional[int],
    ) -> Image.Image: ...

    def encode(self, image: Image.Image, fmt: str, quality: int) -> bytes: ...


def fit_inside(
    original_size: tuple[int, int],
    width: Optional[int],
    height: Optional[int],
) -> tuple[int, int]:
    """Calculate target dimensions that fit inside the given bounds.

    Aspect ratio is preserved and images are never enlarged: bounds larger
    than the original leave the size unchanged.

    Args:
        original_size: Original (width, height)
        width: Max width, or None for unconstrained
        height: Max height, or None for unconstrained

    Returns:
        Target (width, height)
    """
    original_width, original_height = original_size

    scales = []
    if width is not None:
        scales.append(width / original_width)
    if height is not None:
        scales.append(height / original_height)

    if not scales:
        return original_size

    scale = min(scales)
    if scale >= 1:
        return original_size

    return (
        max(1, round(original_width * scale)),
        max(1, round(original_height * scale)),
    )


def clamp_quality(quality: int) -> int:
    return max(MIN_QUALITY, min(MAX_QUALITY, quality))


def flatten_alpha(image: Image.Image) -> Image.Image:
    """Composite transparent images onto white and return an RGB image."""
    if image.mode == 'P':
        image = image.convert('RGBA')

    if image.mode in ('RGBA', 'LA'):
        background = Image.new('RGB', image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        return background

    if image.mode != 'RGB':
        return image.convert('RGB')
    return image


def source_format(content_type: str) -> Optional[str]:
    """Map a source content type to an encode branch, or None if unsupported."""
    subtype = content_type.split(';')[0].strip().lower()
    if 'jpeg' in subtype or 'jpg' in subtype:
        return 'jpeg'
    if 'png' in subtype:
        return 'png'
    if 'webp' in subtype:
        return 'webp'
    return None


class PillowCodec:
    """Decode/resize/encode backed by Pillow.

    Instances hold no per-image state, so one codec can serve concurrent
    requests.
    """

    def __init__(self, max_image_pixels: Optional[int] = None):
        self.max_image_pixels = max_image_pixels

    def decode(self, data: bytes) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(data))
            width, height = image.size
            if self.max_image_pixels is not None and width * height > self.max_image_pixels:
                raise ProcessingFailure(
                    f"Image too large: {width}x{height} exceeds {self.max_image_pixels} pixels"
                )
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise ProcessingFailure(f"Failed to decode image: {e}") from e

        return image

    def resize(
        self,
        image: Image.Image,
        width: Optional[int],
        height: Optional[int],
    ) -> Image.Image:
        target_size = fit_inside(image.size, width, height)
        if target_size == image.size:
            return image

        if image.mode == 'P':
            image = image.convert('RGBA')
        return image.resize(target_size, Image.Resampling.LANCZOS)

    def encode(self, image: Image.Image, fmt: str, quality: int) -> bytes:
        output_buffer = io.BytesIO()

        try:
            if fmt == "jpeg":
                flatten_alpha(image).save(
                    output_buffer,
                    format='JPEG',
                    quality=clamp_quality(quality),
                )
            elif fmt == "webp":
                if image.mode not in ('RGB', 'RGBA'):
                    has_alpha = image.mode in ('LA', 'PA') or 'transparency' in image.info
                    image = image.convert('RGBA' if has_alpha else 'RGB')
                image.save(
                    output_buffer,
                    format='WEBP',
                    quality=clamp_quality(quality),
                )
            elif fmt == "png":
                if image.mode not in PNG_MODES:
                    has_alpha = 'A' in image.getbands() or 'transparency' in image.info
                    image = image.convert('RGBA' if has_alpha else 'RGB')
                image.save(
                    output_buffer,
                    format='PNG',
                    compress_level=PNG_COMPRESS_LEVEL,
                    optimize=True,
                )
            else:
                raise ProcessingFailure(f"Unsupported output format: {fmt}")
        except (OSError, ValueError, KeyError) as e:
            raise ProcessingFailure(f"Failed to encode {fmt}: {e}") from e

        return output_buffer.getvalue()


def execute(
    source: bytes,
    source_content_type: str,
    effective: EffectiveTransform,
    codec: Optional[Codec] = None,
) -> TransformResult:
    """Apply the effective transform to the source bytes.

    Args:
        source: Original image bytes
        source_content_type: Content type declared by the origin
        effective: Resolved transform parameters
        codec: Codec to use (defaults to PillowCodec)

    Returns:
        TransformResult with output bytes and content type

    Raises:
        NotFound: If the source is empty
        ProcessingFailure: If decoding or encoding fails
    """
    if not source:
        raise NotFound("Empty source image")

    # Passthrough: no codec work at all
    if effective.original or (effective.format == "original" and not effective.resizes):
        return TransformResult(
            data=source,
            content_type=source_content_type,
            transformed=False,
        )

    if effective.format in ENCODERS:
        target = effective.format
    else:
        # Keep the original format, apply quality only
        target = source_format(source_content_type)
        if target is None:
            logger.debug(
                "Source type %s has no encoder, returning it undecoded",
                source_content_type,
            )
            return TransformResult(
                data=source,
                content_type=source_content_type,
                transformed=False,
            )

    codec = codec or PillowCodec()

    image = codec.decode(source)
    if effective.resizes:
        image = codec.resize(image, effective.width, effective.height)

    output = codec.encode(image, target, effective.quality)
    _, content_type = ENCODERS[target]

    logger.debug(
        "Transformed %d bytes -> %d bytes (%s, q=%d, %dx%d)",
        len(source), len(output), target, effective.quality, *image.size,
    )

    return TransformResult(
        data=output,
        content_type=content_type,
        dimensions=image.size,
    )
