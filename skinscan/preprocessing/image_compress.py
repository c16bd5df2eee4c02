from __future__ import annotations

import base64
import binascii
import io
import logging
import math
from dataclasses import dataclass
from typing import Tuple

import anyio
from PIL import Image, ImageOps


logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:"
DEFAULT_MIME = "image/jpeg"


@dataclass(frozen=True)
class DecodedPayload:
    """Image bytes split out of a data URL or raw base64 string."""
    mime_type: str
    data: bytes


def split_data_url(image: str) -> Tuple[str, str]:
    """
    Return (mime_type, base64_payload) for a data URL or raw base64 string.
    Raw base64 is assumed to be JPEG.
    """
    text = (image or "").strip()
    if not text.startswith(DATA_URL_PREFIX):
        return DEFAULT_MIME, text

    header, sep, payload = text.partition(",")
    if not sep:
        raise ValueError("Malformed data URL: missing ',' separator")

    mime = header[len(DATA_URL_PREFIX):].split(";", 1)[0].strip() or DEFAULT_MIME
    return mime, payload


def decode_image_payload(image: str) -> DecodedPayload:
    mime, payload = split_data_url(image)
    try:
        data = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image payload: {e}") from e
    if not data:
        raise ValueError("Empty image payload")
    return DecodedPayload(mime_type=mime, data=data)


def to_data_url(data: bytes, mime_type: str = DEFAULT_MIME) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def estimate_decoded_size(image: str) -> int:
    """Approximate byte size of the decoded payload without decoding it."""
    _, payload = split_data_url(image)
    return (len(payload) * 3) // 4


def scaled_size(width: int, height: int, max_width: int) -> Tuple[int, int]:
    """
    Target size for a width-bounded downsample.
    Images at or below max_width keep their resolution.
    """
    if width <= max_width:
        return width, height
    # round half up
    return max_width, int(math.floor(height * max_width / width + 0.5))


def _quality_to_pil(quality: float) -> int:
    # 0..1 float (canvas convention) onto Pillow's 1..95 JPEG scale
    return max(1, min(95, int(round(quality * 100))))


def compress_image_sync(image: str, max_width: int = 1024, quality: float = 0.7) -> str:
    """
    Decode, downsample and re-encode an image as a JPEG data URL.

    Raises on undecodable input; `compress_image` is the passthrough-safe wrapper.
    """
    payload = decode_image_payload(image)

    with Image.open(io.BytesIO(payload.data)) as src:
        img = ImageOps.exif_transpose(src)  # fix orientation if EXIF present
        img = img.convert("RGB")            # JPEG has no alpha channel

    target = scaled_size(img.width, img.height, max_width)
    if target != img.size:
        img = img.resize(target, Image.LANCZOS)

    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=_quality_to_pil(quality))
    return to_data_url(buf.getvalue(), DEFAULT_MIME)


async def compress_image(image: str, max_width: int = 1024, quality: float = 0.7) -> str:
    """
    Bound an image's size before it is sent to the inference service.

    - Accepts a data URL or raw base64
    - Downsamples to max_width preserving aspect ratio
    - Always re-encodes as JPEG at the given quality
    - On any decode/encode failure returns the input unchanged
    """
    try:
        return await anyio.to_thread.run_sync(compress_image_sync, image, max_width, quality)
    except Exception as e:
        logger.warning("image_compress passthrough reason=%s: %s", type(e).__name__, e)
        return image
