"""
Bitmap decoder for webfit (strategy B)

Decodes straight from the in-memory buffer and asks the codec for a
reduced-scale draft that is still at least as large as the final bounds.
For JPEG this uses libjpeg's DCT scaling (1/2, 1/4, 1/8), so a 48 MP photo
headed for a 1920 px bound never exists in memory at full resolution.

Other formats ignore the draft request and decode at full size. If this
decoder fails for any reason the pipeline retries with the surface decoder.
"""

import io
from typing import Optional, Tuple

from . import register_decoder
from .common import open_image, run_decode, DEFAULT_TIMEOUT_S, DEFAULT_RECOMMENDED_MB
from assets import SourceAsset, DecodedBitmap
from utilities import Print


@register_decoder("bitmap")
class BitmapDecoderFactory:
    """Factory for creating bitmap decoder instances."""

    @staticmethod
    def create(config: dict) -> "ReducedBitmapDecoder":
        return ReducedBitmapDecoder(config)


class ReducedBitmapDecoder:
    """
    Decode from memory with codec-level downscaling.

    Attributes:
        timeout_s: Decode deadline in seconds
        recommended_mb: Size above which failures are blamed on file size
    """

    def __init__(self, config: dict):
        self.timeout_s = config.get('timeout_s', DEFAULT_TIMEOUT_S)
        self.recommended_mb = config.get('recommended_file_size_mb', DEFAULT_RECOMMENDED_MB)

    async def decode(
        self,
        asset: SourceAsset,
        size_hint: Optional[Tuple[int, int]] = None
    ) -> DecodedBitmap:
        bitmap = await run_decode(
            asset,
            lambda: open_image(io.BytesIO(asset.data), size_hint=size_hint),
            self.name,
            timeout_s=self.timeout_s,
            recommended_mb=self.recommended_mb
        )
        Print("DEBUG", f"Bitmap decoded at {bitmap.width}x{bitmap.height}")
        return bitmap

    @property
    def name(self) -> str:
        """Decoder identifier."""
        return "bitmap"
