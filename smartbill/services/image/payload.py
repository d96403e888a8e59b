"""
Media Payload Preparation

Turns captured bytes (camera frame, gallery photo, voice clip) into a
base64 MediaPayload the prompt builder can embed.

DESIGN DECISION: Images are checked with Pillow before anything is sent:
1. Bytes that are not an image are rejected locally, not by the provider
2. The MIME type comes from the decoded image, not from the caller's guess
3. Oversized photos are downscaled so a phone picture does not become a
   multi-megabyte request

Images already in a format the endpoint accepts (JPEG, PNG, WebP) and
within the size limit are sent untouched.
"""

import base64
from io import BytesIO
from typing import Optional

import structlog
from PIL import Image, UnidentifiedImageError

from smartbill.models.llm import InputMode, MediaPayload

logger = structlog.get_logger(__name__)

PASSTHROUGH_FORMATS = {"JPEG": "image/jpeg", "PNG": "image/png", "WEBP": "image/webp"}


class MediaError(Exception):
    """Base exception for media preparation errors."""
    pass


class UnsupportedImageError(MediaError):
    """The bytes could not be decoded as an image."""
    pass


class UnsupportedAudioError(MediaError):
    """The clip is empty or not an audio MIME type."""
    pass


def _encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class ImageService:
    """
    Validates and normalizes images for the model.

    Usage:
        payload = ImageService(max_dimension=1600).prepare(frame_bytes)
    """

    def __init__(self, max_dimension: int = 1600, jpeg_quality: int = 85):
        self._max_dimension = max_dimension
        self._jpeg_quality = jpeg_quality

    def _open(self, image_bytes: bytes) -> Image.Image:
        if not image_bytes:
            raise UnsupportedImageError("Image is empty")
        try:
            img = Image.open(BytesIO(image_bytes))
            img.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise UnsupportedImageError(f"Could not read image: {e}") from e
        return img

    def _reencode(self, img: Image.Image) -> bytes:
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        img.thumbnail((self._max_dimension, self._max_dimension))
        buffer = BytesIO()
        img.save(buffer, format="JPEG", quality=self._jpeg_quality)
        return buffer.getvalue()

    def prepare(self, image_bytes: bytes, mime_type: Optional[str] = None) -> MediaPayload:
        """
        Build an image payload.

        Args:
            image_bytes: Raw encoded image
            mime_type: What the caller believes the type is; only logged if
                it disagrees with the decoded format

        Raises:
            UnsupportedImageError: If the bytes are not a readable image
        """
        img = self._open(image_bytes)
        detected = PASSTHROUGH_FORMATS.get(img.format or "")
        too_large = max(img.size) > self._max_dimension

        if mime_type and detected and mime_type != detected:
            logger.info("image_mime_mismatch", declared=mime_type, detected=detected)

        if detected and not too_large:
            return MediaPayload(kind=InputMode.IMAGE, mime_type=detected, data_base64=_encode(image_bytes))

        logger.info(
            "image_reencoded",
            source_format=img.format,
            width=img.size[0],
            height=img.size[1],
        )
        return MediaPayload(
            kind=InputMode.IMAGE,
            mime_type="image/jpeg",
            data_base64=_encode(self._reencode(img)),
        )


def prepare_audio(audio_bytes: bytes, mime_type: str) -> MediaPayload:
    """
    Build an audio payload.

    Raises:
        UnsupportedAudioError: If the clip is empty or the type is not audio/*
    """
    if not audio_bytes:
        raise UnsupportedAudioError("Audio clip is empty")
    mime = (mime_type or "").split(";", 1)[0].strip().lower()
    if not mime.startswith("audio/"):
        raise UnsupportedAudioError(f"Not an audio type: {mime_type!r}")
    return MediaPayload(kind=InputMode.AUDIO, mime_type=mime, data_base64=_encode(audio_bytes))
