"""
Output format capability probe for webfit.

Answers one question: can this Pillow build actually produce WebP?

The check mirrors how a raster canvas reports support: serialize a 1x1
image as a data URI in the requested type and look at the media type of
what came back. to_data_uri() falls back to PNG when the requested encoder
is missing instead of raising, so the prefix of the URI, not an exception,
is the signal. The answer is cached for the life of the process.
"""

import base64
import io
import threading
from typing import Optional

from PIL import Image

from utilities import Print

MODERN_MIME_TYPE = 'image/webp'

# Magic-number prefixes used to identify what an encoder actually wrote
_SIGNATURES = (
    (b'\x89PNG\r\n\x1a\n', 'image/png'),
    (b'\xff\xd8\xff', 'image/jpeg'),
    (b'GIF87a', 'image/gif'),
    (b'GIF89a', 'image/gif'),
    (b'BM', 'image/bmp'),
)

_modern_supported: Optional[bool] = None
_probe_lock = threading.Lock()


def sniff_mime_type(data: bytes) -> str:
    """
    Identify an encoded image by its leading bytes.

    Returns:
        MIME type, or 'application/octet-stream' when unrecognized
    """
    if len(data) >= 12 and data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return 'image/webp'
    for signature, mime_type in _SIGNATURES:
        if data.startswith(signature):
            return mime_type
    return 'application/octet-stream'


def _save_format_for(mime_type: str) -> Optional[str]:
    """Pillow format name that can save the given MIME type, if any."""
    Image.init()
    for format_name, registered_mime in Image.MIME.items():
        if registered_mime == mime_type and format_name in Image.SAVE:
            return format_name
    return None


def to_data_uri(image: Image.Image, mime_type: str = 'image/png') -> str:
    """
    Serialize an image as a base64 data URI.

    When Pillow has no encoder for mime_type the image is written as PNG,
    and the URI says so.
    """
    format_name = _save_format_for(mime_type) or 'PNG'
    buffer = io.BytesIO()
    try:
        image.save(buffer, format=format_name)
    except (KeyError, OSError):
        # Registered but the codec library is missing from this build
        buffer = io.BytesIO()
        image.save(buffer, format='PNG')
    data = buffer.getvalue()
    encoded = base64.b64encode(data).decode('ascii')
    return f"data:{sniff_mime_type(data)};base64,{encoded}"


def _probe_modern_format() -> bool:
    try:
        probe = Image.new('RGB', (1, 1))
        try:
            data_uri = to_data_uri(probe, MODERN_MIME_TYPE)
        finally:
            probe.close()
        return data_uri.startswith(f"data:{MODERN_MIME_TYPE}")
    except Exception as e:
        Print("WARNING", f"WebP capability probe failed, falling back to JPEG: {e}")
        return False


def supports_modern_format() -> bool:
    """
    Whether WebP output is available.

    Never raises: a failed probe counts as "unsupported".
    """
    global _modern_supported

    if _modern_supported is None:
        with _probe_lock:
            if _modern_supported is None:
                _modern_supported = _probe_modern_format()
                Print("DEBUG", f"WebP output supported: {_modern_supported}")
    return _modern_supported


def reset_capability_cache() -> None:
    """Forget the cached probe result."""
    global _modern_supported

    with _probe_lock:
        _modern_supported = None
