"""CDN Optimize - Serve images from Cloudflare R2 with on-the-fly optimization.

Resizes and re-encodes stored originals per request, picking format and
quality from query parameters or from the client's device and connection.
"""

__version__ = "0.1.0"
__author__ = "CDN Optimize"

from .models import EffectiveTransform, TransformRequest, TransformResult
from .process import execute
from .resolver import resolve

__all__ = [
    "__version__",
    "EffectiveTransform",
    "TransformRequest",
    "TransformResult",
    "execute",
    "resolve",
]
