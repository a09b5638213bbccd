"""
HEIC/HEIF normalization for webfit.

iPhones save photos as HEIC by default. Pillow cannot read it without a
plugin, so HEIC inputs are converted to JPEG first and then go through the
normal pipeline like any other JPEG.

The conversion writes JPEG at quality 0.92, well above the final encode
quality: this is an intermediate file and a second lossy encode follows,
so two passes at the final quality would visibly degrade the photo.

The conversion backend (pillow-heif) is imported on first use and cached.
"""

import asyncio
import importlib
import io
import re
import threading

from assets import SourceAsset
from engines.compression import get_compressor
from errors import ConversionUnavailable, ConversionFailed
from utilities import Print, create_error_message

HEIC_MIME_TYPES = frozenset({
    'image/heic',
    'image/heif',
    'image/heic-sequence',
    'image/heif-sequence',
})

NORMALIZED_QUALITY = 0.92
NORMALIZED_MIME_TYPE = 'image/jpeg'

_HEIC_NAME_PATTERN = re.compile(r'\.(heic|heif)$', re.IGNORECASE)

_heif_backend = None
_backend_lock = threading.Lock()


def is_heic_file(asset: SourceAsset) -> bool:
    """
    Whether an asset is a HEIC/HEIF container.

    Checks the extension as well as the MIME type because some devices
    report an empty or generic type for these files.
    """
    return (
        (asset.mime_type or '').lower() in HEIC_MIME_TYPES
        or bool(_HEIC_NAME_PATTERN.search(asset.name or ''))
    )


def load_heif_backend():
    """
    Import pillow_heif once and cache the module.

    Raises:
        ConversionUnavailable: If pillow_heif cannot be imported
    """
    global _heif_backend

    if _heif_backend is None:
        with _backend_lock:
            if _heif_backend is None:
                try:
                    _heif_backend = importlib.import_module('pillow_heif')
                except ImportError as e:
                    Print("WARNING", f"Failed to load HEIC conversion backend: {e}")
                    raise ConversionUnavailable(
                        "The HEIC conversion library could not be loaded. "
                        "Install it with: pip install pillow-heif"
                    ) from e
                Print("DEBUG", f"Loaded pillow_heif {getattr(_heif_backend, '__version__', '')}")
    return _heif_backend


def _convert_to_jpeg(backend, data: bytes) -> bytes:
    heif_file = backend.open_heif(io.BytesIO(data), convert_hdr_to_8bit=True)
    if len(heif_file) == 0:
        raise ValueError("container holds no images")

    # Burst and Live Photo containers hold several images; keep the first
    if len(heif_file) > 1:
        Print("DEBUG", f"HEIC container holds {len(heif_file)} images, using the first")

    image = heif_file[0].to_pillow()
    try:
        return get_compressor('jpeg', {}).compress(image, NORMALIZED_QUALITY)
    finally:
        image.close()


async def normalize(asset: SourceAsset) -> bytes:
    """
    Convert a HEIC asset to JPEG bytes.

    Args:
        asset: HEIC/HEIF input

    Returns:
        JPEG bytes encoded at quality 0.92

    Raises:
        ConversionUnavailable: If the backend cannot be loaded
        ConversionFailed: If the backend errors or yields no image
    """
    backend = load_heif_backend()

    try:
        data = await asyncio.to_thread(_convert_to_jpeg, backend, asset.data)
    except Exception as e:
        raise ConversionFailed.for_asset(
            create_error_message("HEIC conversion failed", e), asset
        ) from e

    if not data:
        raise ConversionFailed.for_asset("HEIC conversion returned an invalid result", asset)

    return data


async def normalize_asset(asset: SourceAsset) -> SourceAsset:
    """
    Build the JPEG replacement for a HEIC asset.

    The input asset is left untouched; '.heic'/'.heif' in the name becomes '.jpg'.
    """
    data = await normalize(asset)
    name = _HEIC_NAME_PATTERN.sub('.jpg', asset.name or '')
    Print("SUCCESS", f"Converted HEIC {asset.name} -> {name} ({len(data):,} bytes)")
    return SourceAsset(data=data, mime_type=NORMALIZED_MIME_TYPE, name=name)
