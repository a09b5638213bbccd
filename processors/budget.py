"""
Quality-budget encoder for webfit.

Encodes a surface at decreasing quality until the output fits the byte
budget or the quality floor is reached. The floor is a hard stop: a result
still over budget at 0.5 is returned as is rather than degrading further.
From the default 0.85 the search runs at most five encodes
(0.85, 0.75, 0.65, 0.55, 0.5).
"""

import asyncio
import re
import time

from assets import RasterSurface, EncodedResult
from engines.compression.base import ImageCompressor
from errors import EncodeFailed
from utilities import Print, get_file_size_mb, create_error_message

MIN_COMPRESSION_QUALITY = 0.5
QUALITY_STEP = 0.1

_EXTENSION_PATTERN = re.compile(r'\.[^/.]+$')


def replace_extension(file_name: str, extension: str) -> str:
    """
    Swap the last extension of file_name for extension.

    Names without an extension get it appended.
    """
    if not file_name:
        return f"image{extension}"
    if _EXTENSION_PATTERN.search(file_name):
        return _EXTENSION_PATTERN.sub(extension, file_name)
    return f"{file_name}{extension}"


class QualityBudgetEncoder:
    """
    Iterative quality search against a byte budget.

    Attributes:
        min_quality: Quality floor where the search stops
        quality_step: Amount quality drops per retry
    """

    def __init__(self, min_quality: float = MIN_COMPRESSION_QUALITY, quality_step: float = QUALITY_STEP):
        self.min_quality = min_quality
        self.quality_step = quality_step

    def clamp(self, quality: float) -> float:
        return round(min(max(quality, self.min_quality), 1.0), 2)

    async def encode(
        self,
        surface: RasterSurface,
        compressor: ImageCompressor,
        initial_quality: float,
        target_mb: float,
        source_name: str
    ) -> EncodedResult:
        """
        Encode surface until it fits target_mb or quality hits the floor.

        Args:
            surface: Resized raster surface
            compressor: Output encoder
            initial_quality: Starting quality (clamped to [floor, 1.0])
            target_mb: Byte budget in MB
            source_name: Original file name; its extension is replaced

        Returns:
            EncodedResult for the first pass that fits, or the floor pass

        Raises:
            EncodeFailed: If the encoder errors or returns no bytes
        """
        quality = self.clamp(initial_quality)
        attempts = 0

        while True:
            attempts += 1
            data = await self._encode_once(surface, compressor, quality, source_name)
            size_mb = get_file_size_mb(len(data))

            if size_mb <= target_mb or quality <= self.min_quality:
                if size_mb > target_mb:
                    Print("WARNING",
                        f"Quality floor {self.min_quality} reached at {size_mb:.2f}MB "
                        f"(target {target_mb}MB)"
                    )
                else:
                    Print("DEBUG", f"Encoded {compressor.name} at quality {quality}: {size_mb:.2f}MB")
                return EncodedResult(
                    data=data,
                    mime_type=compressor.mime_type,
                    extension=compressor.extension,
                    quality=quality,
                    name=replace_extension(source_name, compressor.extension),
                    width=surface.width,
                    height=surface.height,
                    attempts=attempts,
                    last_modified=time.time()
                )

            Print("PROGRESS",
                f"{size_mb:.2f}MB over {target_mb}MB at quality {quality}, retrying"
            )
            quality = self.clamp(quality - self.quality_step)

    async def _encode_once(
        self,
        surface: RasterSurface,
        compressor: ImageCompressor,
        quality: float,
        source_name: str
    ) -> bytes:
        try:
            data = await asyncio.to_thread(compressor.compress, surface.image, quality)
        except RuntimeError as e:
            raise EncodeFailed(
                create_error_message(f"Image compression failed (quality: {quality})", e),
                file_name=source_name
            ) from e
        if not data:
            raise EncodeFailed(
                f"Image compression failed (quality: {quality})",
                file_name=source_name
            )
        return data
