"""
Bitmap Decoder Protocol for webfit

Defines the contract that both decode strategies implement.
"""

from typing import Protocol, Optional, Tuple

from assets import SourceAsset, DecodedBitmap


class BitmapDecoder(Protocol):
    """
    Protocol for bitmap decoders.

    A decoder turns the bytes of a SourceAsset into a DecodedBitmap. Every
    decoder must:
    - Finish within its timeout or raise ImageLoadTimeout
    - Raise ImageLoadFailed when the bytes cannot be decoded
    - Raise InvalidImageDimensions when a decoded side is < 1 pixel
    - Release any transient resources it created on every exit path
    """

    async def decode(
        self,
        asset: SourceAsset,
        size_hint: Optional[Tuple[int, int]] = None
    ) -> DecodedBitmap:
        """
        Decode an asset into a bitmap.

        Args:
            asset: Input file
            size_hint: Final pixel bounds (max_width, max_height). Decoders
                      may use it to decode at a reduced scale that is still
                      at least this large.

        Returns:
            DecodedBitmap owned by the caller, who must close() it

        Raises:
            DecodeError: On timeout, decode failure or invalid dimensions
        """
        ...

    @property
    def name(self) -> str:
        """
        Decoder identifier for logging and debugging.

        Returns:
            Unique name of this decoder ('surface' or 'bitmap')
        """
        ...
