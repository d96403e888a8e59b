"""Image and audio capture services package."""

from smartbill.services.image.capture import CaptureCountdown
from smartbill.services.image.payload import (
    ImageService,
    MediaError,
    UnsupportedAudioError,
    UnsupportedImageError,
    prepare_audio,
)

__all__ = [
    "CaptureCountdown",
    "ImageService",
    "MediaError",
    "UnsupportedAudioError",
    "UnsupportedImageError",
    "prepare_audio",
]
