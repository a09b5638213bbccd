"""
Shared decode helpers for webfit decoders.

Both strategies run the blocking Pillow decode in a worker thread under the
same deadline, translate failures the same way and check dimensions the
same way. Only where the bytes come from differs.
"""

import asyncio
from typing import Callable, Optional, Tuple

from PIL import Image, ImageOps

from assets import SourceAsset, DecodedBitmap
from errors import ImageLoadTimeout, ImageLoadFailed, InvalidImageDimensions
from utilities import Print, get_file_size_mb

DEFAULT_TIMEOUT_S = 60
DEFAULT_RECOMMENDED_MB = 10

# Phone sensors already exceed Pillow's 179 MP default. Pillow warns above
# this many pixels and raises DecompressionBombError above twice as many.
DEFAULT_MAX_IMAGE_PIXELS = 1_000_000_000

# Exceptions Pillow raises for bytes it cannot turn into pixels
DECODE_EXCEPTIONS = (
    OSError,
    ValueError,
    SyntaxError,
    EOFError,
    MemoryError,
    Image.DecompressionBombError,
)


def set_pixel_ceiling(max_pixels: int = DEFAULT_MAX_IMAGE_PIXELS) -> None:
    """Set the process-wide decoded pixel ceiling Pillow enforces on open."""
    Image.MAX_IMAGE_PIXELS = max_pixels


set_pixel_ceiling()


def load_error_message(asset: SourceAsset, recommended_mb: float) -> str:
    """
    Human-readable message for a failed decode.

    Files above the recommended size most likely failed because of their
    size; smaller ones most likely because of their format.
    """
    size_mb = get_file_size_mb(asset.size)
    if size_mb > recommended_mb:
        return (
            f"Failed to load image. The file may be too large ({size_mb:.2f}MB). "
            f"The recommended size is {recommended_mb}MB or less. "
            f"Choose another image or reduce its size and try again."
        )
    return (
        f"Failed to load image. The file format ({asset.mime_type or 'unknown'}) "
        f"may not be supported."
    )


def open_image(source, size_hint: Optional[Tuple[int, int]] = None) -> Image.Image:
    """
    Open and fully decode an image from a path or file object.

    EXIF orientation is applied the way a browser applies it on decode.
    When size_hint is given the codec may decode at a reduced scale that
    is still at least that large.
    """
    image = Image.open(source)
    try:
        if size_hint is not None:
            image.draft(None, size_hint)
        image.load()
        ImageOps.exif_transpose(image, in_place=True)
    except BaseException:
        image.close()
        raise
    return image


def check_dimensions(image: Image.Image, asset: SourceAsset) -> None:
    """
    Raises:
        InvalidImageDimensions: If either decoded side is below 1 pixel
    """
    width, height = image.size
    if width < 1 or height < 1:
        raise InvalidImageDimensions.for_asset(
            f"Invalid image dimensions: {width}x{height}", asset
        )


async def run_decode(
    asset: SourceAsset,
    load: Callable[[], Image.Image],
    strategy: str,
    timeout_s: float = DEFAULT_TIMEOUT_S,
    recommended_mb: float = DEFAULT_RECOMMENDED_MB
) -> DecodedBitmap:
    """
    Run a blocking load() in a worker thread under a deadline.

    Args:
        asset: Input file (for messages and error context)
        load: Callable returning a fully loaded PIL image
        strategy: Decoder name stamped on the bitmap
        timeout_s: Deadline in seconds
        recommended_mb: Size threshold that selects the failure message

    Returns:
        DecodedBitmap

    Raises:
        ImageLoadTimeout: If load() does not finish in time
        ImageLoadFailed: If Pillow cannot decode the bytes
        InvalidImageDimensions: If a decoded side is < 1 pixel
    """
    try:
        image = await asyncio.wait_for(asyncio.to_thread(load), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise ImageLoadTimeout.for_asset(
            f"Image load timed out ({timeout_s:g} seconds). The file may be too large "
            f"({get_file_size_mb(asset.size):.2f}MB).",
            asset
        ) from e
    except DECODE_EXCEPTIONS as e:
        Print("FAILURE", f"{strategy} decode failed for {asset.name or '<unnamed>'}: {e}")
        raise ImageLoadFailed.for_asset(load_error_message(asset, recommended_mb), asset) from e

    try:
        check_dimensions(image, asset)
    except InvalidImageDimensions:
        image.close()
        raise

    return DecodedBitmap(image, strategy)
