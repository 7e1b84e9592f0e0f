"""Errors raised inside the capture workflow."""


class CaptureError(RuntimeError):
    """Base class for workflow failures reported to the origin tab."""


class ActivationRejected(CaptureError):
    """Activation input is missing, malformed or not allowed. Not retryable."""


class NavigationTimeout(CaptureError):
    pass


class MessageDeliveryError(CaptureError):
    """A single message could not be delivered to a tab."""


class NoReceiverError(MessageDeliveryError):
    """The tab exists but no UI script is listening (yet)."""


class TabClosedError(MessageDeliveryError):
    pass


class DeliveryFailed(CaptureError):
    """Delivery was required but every retry failed."""


class ImageDecodeError(CaptureError):
    pass


class CropError(CaptureError):
    pass


class UploadError(CaptureError):
    pass
