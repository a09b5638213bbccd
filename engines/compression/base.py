"""
Image Compressor Protocol for webfit

Defines the contract that every output encoder must implement.
"""

from typing import Protocol
from PIL import Image


class ImageCompressor(Protocol):
    """
    Protocol for output encoders.

    Compressors are responsible for:
    - Encoding a PIL image to a byte stream at a given quality
    - Reporting the MIME type and file extension of that stream
    """

    def compress(self, image: Image.Image, quality: float) -> bytes:
        """
        Compress image to bytes.

        Args:
            image: PIL Image to compress (the resized raster surface)
            quality: Encode quality between 0.0 and 1.0

        Returns:
            Encoded image as bytes (empty only if the codec produced nothing)

        Raises:
            RuntimeError: If the codec fails
        """
        ...

    @property
    def mime_type(self) -> str:
        """
        Media type of the encoded stream.

        Returns:
            e.g. 'image/webp', 'image/jpeg'
        """
        ...

    @property
    def extension(self) -> str:
        """File extension including the dot (e.g. '.webp', '.jpg')."""
        ...

    @property
    def name(self) -> str:
        """
        Compressor identifier for logging and debugging.

        Returns:
            Unique name of this compressor (e.g., 'webp', 'jpeg')
        """
        ...
