"""
WebP compression engine for webfit

WebP is the preferred output: typically 25-35% smaller than JPEG at the same
visual quality, and it keeps alpha. Not every Pillow build ships libwebp, so
the pipeline only asks for this compressor after supports_modern_format()
has confirmed the encoder works.
"""

import io
from PIL import Image

from . import register_compressor, codec_quality
from .probe import supports_modern_format
from utilities import Print


@register_compressor("webp")
class WebPCompressorFactory:
    """Factory for creating WebP compressor instances."""

    @staticmethod
    def create(config: dict) -> "WebPCompressor":
        return WebPCompressor(config)


class WebPCompressor:
    """
    Lossy WebP encoder.

    Attributes:
        method: Encoder effort, 0 (fast) - 6 (slowest, smallest)
        lossless: Use lossless mode (quality then controls effort, not fidelity)
    """

    def __init__(self, config: dict):
        """
        Initialize WebP compressor with configuration.

        Args:
            config: Configuration dictionary with optional keys:
                - method: int (default: 4)
                - lossless: bool (default: False)
        """
        self.method = config.get('method', 4)
        self.lossless = config.get('lossless', False)

        # Verify WebP support at initialization
        self._verify_webp_support()

    def _verify_webp_support(self) -> None:
        """
        Verify that Pillow can encode WebP.

        Raises:
            RuntimeError: If WebP encoding is not available
        """
        if not supports_modern_format():
            raise RuntimeError(
                "WebP encoding not available in this Pillow build.\n"
                "Install libwebp and reinstall Pillow: pip install --force-reinstall Pillow"
            )

    def compress(self, image: Image.Image, quality: float) -> bytes:
        """
        Compress image to WebP.

        Args:
            image: PIL Image (RGB or RGBA; other modes are converted)
            quality: 0.0 - 1.0

        Returns:
            WebP bytes

        Raises:
            RuntimeError: If compression fails
        """
        source = image
        if image.mode not in ('RGB', 'RGBA'):
            has_alpha = image.mode in ('LA', 'PA') or 'transparency' in image.info
            source = image.convert('RGBA' if has_alpha else 'RGB')
            Print("DEBUG", f"Converted {image.mode} to {source.mode} for WebP")

        buffer = io.BytesIO()

        try:
            source.save(
                buffer,
                format='WEBP',
                quality=codec_quality(quality),
                method=self.method,
                lossless=self.lossless
            )
        except (OSError, ValueError, KeyError) as e:
            raise RuntimeError(
                f"WebP compression failed: {e}\n"
                f"Image: {image.size}, mode: {image.mode}, quality: {quality}"
            ) from e
        finally:
            if source is not image:
                source.close()

        return buffer.getvalue()

    @property
    def mime_type(self) -> str:
        return "image/webp"

    @property
    def extension(self) -> str:
        return ".webp"

    @property
    def name(self) -> str:
        """Compressor identifier."""
        return "webp"
