"""
JPEG compression engine for webfit

JPEG is the universal fallback: every runtime that can decode images can
decode it, so it is used whenever WebP output is unavailable or the caller
asks for the legacy format. It is also the intermediate format HEIC photos
are converted to before the final encode.
"""

import io
from PIL import Image

from . import register_compressor, codec_quality
from utilities import Print


@register_compressor("jpeg")
class JPEGCompressorFactory:
    """Factory for creating JPEG compressor instances."""

    @staticmethod
    def create(config: dict) -> "JPEGCompressor":
        return JPEGCompressor(config)


def flatten_to_rgb(image: Image.Image) -> Image.Image:
    """
    Convert any Pillow mode to RGB, compositing transparency onto white.

    Returns the input unchanged when it is already RGB.
    """
    if image.mode == 'RGBA':
        background = Image.new('RGB', image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[3])
        Print("DEBUG", "Converted RGBA to RGB for JPEG")
        return background
    if image.mode == 'LA':
        background = Image.new('L', image.size, 255)
        background.paste(image, mask=image.split()[1])
        Print("DEBUG", "Converted LA to RGB for JPEG")
        return background.convert('RGB')
    if image.mode == 'P':
        # Palette images may carry transparency in their info dict
        if 'transparency' in image.info:
            return flatten_to_rgb(image.convert('RGBA'))
        Print("DEBUG", "Converted palette to RGB for JPEG")
        return image.convert('RGB')
    if image.mode != 'RGB':
        Print("DEBUG", f"Converted {image.mode} to RGB for JPEG")
        return image.convert('RGB')
    return image


class JPEGCompressor:
    """
    Baseline/progressive JPEG encoder.

    Attributes:
        optimize: Run the extra Huffman optimization pass
        progressive: Write a progressive JPEG
        subsampling: Chroma subsampling passed to Pillow (-1 keeps Pillow's default)
    """

    def __init__(self, config: dict):
        """
        Initialize JPEG compressor with configuration.

        Args:
            config: Configuration dictionary with optional keys:
                - optimize: bool (default: True)
                - progressive: bool (default: True)
                - subsampling: int (default: -1)
        """
        self.optimize = config.get('optimize', True)
        self.progressive = config.get('progressive', True)
        self.subsampling = config.get('subsampling', -1)

    def compress(self, image: Image.Image, quality: float) -> bytes:
        """
        Compress image to JPEG.

        Args:
            image: PIL Image (flattened to RGB when needed)
            quality: 0.0 - 1.0

        Returns:
            JPEG bytes

        Raises:
            RuntimeError: If compression fails
        """
        rgb = flatten_to_rgb(image)
        buffer = io.BytesIO()

        try:
            rgb.save(
                buffer,
                format='JPEG',
                quality=codec_quality(quality),
                optimize=self.optimize,
                progressive=self.progressive,
                subsampling=self.subsampling
            )
        except (OSError, ValueError) as e:
            raise RuntimeError(
                f"JPEG compression failed: {e}\n"
                f"Image: {image.size}, mode: {image.mode}, quality: {quality}"
            ) from e
        finally:
            if rgb is not image:
                rgb.close()

        return buffer.getvalue()

    @property
    def mime_type(self) -> str:
        return "image/jpeg"

    @property
    def extension(self) -> str:
        return ".jpg"

    @property
    def name(self) -> str:
        """Compressor identifier."""
        return "jpeg"
