"""Error taxonomy for image delivery.

Each error carries the HTTP status it maps to and a generic message that is
safe to show to clients. Details belong in the log, not in the message.
"""


class ImageDeliveryError(Exception):
    """Base class for failures that terminate an image request."""

    status_code = 500
    message = "Internal error"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.message)
        self.detail = detail or self.message


class NotFound(ImageDeliveryError):
    """Origin has no object at the key, or returned an empty body."""

    status_code = 404
    message = "Image not found"


class ProcessingFailure(ImageDeliveryError):
    """Decoding or encoding the image failed."""

    status_code = 500
    message = "Failed to process image"


class UpstreamTimeout(ImageDeliveryError):
    """Origin fetch exceeded its timeout."""

    status_code = 504
    message = "Origin timed out"


class UpstreamError(ImageDeliveryError):
    """Origin could not be reached or failed for a reason other than a missing key."""

    status_code = 502
    message = "Failed to fetch image"
