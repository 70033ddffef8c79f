"""Request parameter resolution for image delivery.

Turns query parameters and request headers into the transform that is
actually applied: parses the requested format/quality/bounds, classifies
the device and connection, and applies auto-optimization overrides.

Everything here is pure: no I/O, no errors, same inputs give equal results.
"""

import re
from collections.abc import Mapping
from typing import Optional

from .models import (
    DEFAULT_QUALITY,
    ConnectionClass,
    DeviceClass,
    EffectiveTransform,
    TransformRequest,
)

MOBILE_PATTERN = re.compile(
    r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini",
    re.IGNORECASE,
)
TABLET_PATTERN = re.compile(r"iPad|Android", re.IGNORECASE)

FORMAT_ALIASES = {"jpg": "jpeg"}

# Effective connection type (ECT client hint)
ECT_CLASSES: dict[str, ConnectionClass] = {
    "slow-2g": "slow",
    "2g": "slow",
    "3g": "moderate",
    "4g": "fast",
}

# Coarse Connection-Type header sent by some mobile browsers
CONNECTION_TYPE_CLASSES: dict[str, ConnectionClass] = {
    "cellular": "slow",
    "2g": "slow",
    "3g": "slow",
    "slow-2g": "slow",
    "bluetooth": "slow",
    "wimax": "slow",
    "4g": "moderate",
    "lte": "moderate",
    "wifi": "fast",
    "ethernet": "fast",
}

# Auto-optimization base per device: (quality, format, default width)
DEVICE_PROFILES: dict[DeviceClass, tuple[int, str, Optional[int]]] = {
    "mobile": (50, "webp", 800),
    "tablet": (75, "webp", 1200),
    "desktop": (90, "webp", None),
}

SLOW_MAX_QUALITY = 50
SLOW_MAX_DIMENSION = 600
MODERATE_MAX_QUALITY = 70
MODERATE_MAX_DIMENSION = 1000

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+))")


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse the leading integer of a string ("75px" -> 75).

    Returns None when the value is missing or has no leading digits.
    """
    if value is None:
        return None
    match = _LEADING_INT.match(value)
    if not match:
        return None
    return int(match.group(1))


def parse_float(value: Optional[str]) -> Optional[float]:
    """Parse the leading decimal number of a string, or None."""
    if value is None:
        return None
    match = _LEADING_FLOAT.match(value)
    if not match:
        return None
    return float(match.group(1))


def parse_dimension(value: Optional[str]) -> Optional[int]:
    """Parse a width/height bound. Zero, negative and malformed values mean no bound."""
    number = parse_int(value)
    if number is None or number <= 0:
        return None
    return number


def parse_request(query: Mapping[str, str], storage_key: str = "") -> TransformRequest:
    """Parse transformation intent from query parameters.

    Args:
        query: Query parameters, one value per name (the server passes the first)
        storage_key: Origin object key the request refers to

    Returns:
        TransformRequest with defaults filled in
    """
    quality = parse_int(query.get("quality"))
    fmt = query.get("format") or "original"

    return TransformRequest(
        storage_key=storage_key,
        return_original=query.get("original") == "true",
        format=FORMAT_ALIASES.get(fmt, fmt),
        quality=DEFAULT_QUALITY if quality is None else quality,
        width=parse_dimension(query.get("width")),
        height=parse_dimension(query.get("height")),
        auto_optimize=query.get("autoOptimize") == "true",
    )


def is_mobile(user_agent: str) -> bool:
    return MOBILE_PATTERN.search(user_agent) is not None


def detect_device(user_agent: str) -> DeviceClass:
    """Classify the client device from its User-Agent.

    The mobile check runs first and wins: a tablet is only reported when the
    tablet pattern matches and the mobile pattern does not.
    """
    mobile = is_mobile(user_agent)
    tablet = TABLET_PATTERN.search(user_agent) is not None and not mobile

    if mobile:
        return "mobile"
    if tablet:
        return "tablet"
    return "desktop"


def normalize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Lower-case header names so lookups are case-insensitive."""
    return {name.lower(): value for name, value in headers.items()}


def detect_connection(headers: Mapping[str, str]) -> ConnectionClass:
    """Classify connection quality from client hint headers.

    Signals are checked in priority order and the first one that yields a
    class wins; later signals are not consulted.

    Args:
        headers: Request headers (any name casing)

    Returns:
        "slow", "moderate" or "fast"
    """
    headers = normalize_headers(headers)

    if headers.get("save-data") == "on":
        return "slow"

    effective_type = headers.get("ect") or headers.get("effective-connection-type")
    if effective_type in ECT_CLASSES:
        return ECT_CLASSES[effective_type]

    downlink = parse_float(headers.get("downlink"))
    if downlink is not None:
        if downlink < 1.5:
            return "slow"
        if downlink < 4:
            return "moderate"
        return "fast"

    rtt = parse_int(headers.get("rtt"))
    if rtt is not None:
        if rtt > 300:
            return "slow"
        if rtt > 150:
            return "moderate"
        return "fast"

    connection_type = headers.get("connection-type")
    if connection_type and connection_type.lower() in CONNECTION_TYPE_CLASSES:
        return CONNECTION_TYPE_CLASSES[connection_type.lower()]

    # No modern format support hints at an older, slower client
    accept = headers.get("accept", "")
    if "webp" not in accept and "avif" not in accept:
        return "moderate"

    if is_mobile(headers.get("user-agent", "")):
        return "moderate"

    return "fast"


def _cap(value: Optional[int], limit: int) -> Optional[int]:
    return min(value, limit) if value is not None else None


def apply_auto_optimization(
    request: TransformRequest,
    device: DeviceClass,
    connection: ConnectionClass,
) -> EffectiveTransform:
    """Merge the request with device and connection heuristics.

    The device profile is applied first, then the connection class refines
    it and may override the device's format choice. Requested bounds are
    kept as the starting point for clamping.
    """
    quality, fmt, default_width = DEVICE_PROFILES[device]
    width = request.width if request.width is not None else default_width
    height = request.height

    if connection == "slow":
        quality = min(SLOW_MAX_QUALITY, quality)
        fmt = "jpeg"
        width = _cap(width, SLOW_MAX_DIMENSION)
        height = _cap(height, SLOW_MAX_DIMENSION)
    elif connection == "moderate":
        quality = min(MODERATE_MAX_QUALITY, quality)
        if fmt == "original":
            fmt = "webp"
        width = _cap(width, MODERATE_MAX_DIMENSION)
        height = _cap(height, MODERATE_MAX_DIMENSION)

    return EffectiveTransform(
        format=fmt,
        quality=quality,
        width=width,
        height=height,
        original=request.return_original,
        device=device,
        connection=connection,
    )


def resolve(query: Mapping[str, str], headers: Mapping[str, str]) -> EffectiveTransform:
    """Compute the effective transform for a request.

    Args:
        query: Query parameters
        headers: Request headers

    Returns:
        EffectiveTransform to hand to the executor
    """
    request = parse_request(query)
    user_agent = normalize_headers(headers).get("user-agent", "")
    device = detect_device(user_agent)
    connection = detect_connection(headers)

    if request.auto_optimize:
        return apply_auto_optimization(request, device, connection)

    return EffectiveTransform(
        format=request.format,
        quality=request.quality,
        width=request.width,
        height=request.height,
        original=request.return_original,
        device=device,
        connection=connection,
    )
