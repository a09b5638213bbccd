"""
Resize calculation and raster surface drawing for webfit.

draw_to_surface() is the single point where a decoded bitmap, whichever
decoder produced it, becomes an encodable surface.
"""

from typing import Tuple

from PIL import Image, features

from assets import DecodedBitmap, RasterSurface


def calculate_resized_dimensions(
    width: float,
    height: float,
    max_width: float,
    max_height: float
) -> Tuple[float, float]:
    """
    Fit (width, height) inside (max_width, max_height) keeping the aspect ratio.

    Images already inside the bounds come back unchanged (never upscaled).
    Otherwise the dominant axis is clamped first and the other axis derived
    from the aspect ratio; if that still overflows the other bound (only
    possible with non-square bounds) the result is scaled down once more.

    Example:
        calculate_resized_dimensions(3000, 2000, 1920, 1920) -> (1920, 1280.0)
    """
    if width <= max_width and height <= max_height:
        return width, height

    aspect_ratio = width / height

    if width > height:
        new_width = min(width, max_width)
        new_height = new_width / aspect_ratio
    else:
        new_height = min(height, max_height)
        new_width = new_height * aspect_ratio

    if new_width > max_width:
        new_width = max_width
        new_height = new_width / aspect_ratio
    if new_height > max_height:
        new_height = max_height
        new_width = new_height * aspect_ratio

    return new_width, new_height


def canvas_backend_available() -> bool:
    """Whether Pillow can allocate images and encode the JPEG fallback output."""
    if not features.check('jpg'):
        return False
    try:
        Image.new('RGB', (1, 1)).close()
    except (OSError, MemoryError):
        return False
    return True


def _to_eight_bit(image: Image.Image) -> Image.Image:
    """
    Scale 16-bit grayscale ('I', 'I;16*') down to 8-bit 'L'.

    A plain convert() clips every sample above 255 to white.
    """
    wide = image if image.mode == 'I' else image.convert('I')
    try:
        return wide.point(lambda v: v * (1 / 256)).convert('L')
    finally:
        if wide is not image:
            wide.close()


def _surface_mode(image: Image.Image) -> str:
    if image.mode in ('RGBA', 'LA', 'PA') or 'transparency' in image.info:
        return 'RGBA'
    return 'RGB'


def draw_to_surface(bitmap: DecodedBitmap, width: float, height: float) -> RasterSurface:
    """
    Draw a decoded bitmap onto a new surface of the given size.

    Fractional sizes are rounded; each side is at least 1 pixel. The bitmap
    is not released here; the caller owns it.
    """
    target = (max(1, int(round(width))), max(1, int(round(height))))
    source = bitmap.image
    mode = _surface_mode(source)

    if source.mode == 'I' or source.mode.startswith('I;16'):
        narrowed = _to_eight_bit(source)
        converted = narrowed.convert(mode)
        narrowed.close()
    else:
        converted = source if source.mode == mode else source.convert(mode)
    try:
        if converted.size == target:
            drawn = converted.copy()
        else:
            drawn = converted.resize(target, Image.Resampling.LANCZOS, reducing_gap=3.0)
    finally:
        if converted is not source:
            converted.close()

    return RasterSurface(drawn)
