"""
Error taxonomy for webfit.

Every failure the pipeline surfaces is a CompressionError subclass carrying
enough context (file name, size, declared type) for the caller to build a
human-readable message and let the user pick another file.

Only DecodeError raised by the bitmap decoder is recovered inside the
pipeline (it falls back to the surface decoder). Everything else propagates.
"""

from typing import Optional

from utilities import get_file_size_mb


class CompressionError(RuntimeError):
    """Base class for all pipeline failures."""

    def __init__(
        self,
        message: str,
        file_name: Optional[str] = None,
        file_size: Optional[int] = None,
        mime_type: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.file_name = file_name
        self.file_size = file_size
        self.mime_type = mime_type

    @classmethod
    def for_asset(cls, message: str, asset) -> "CompressionError":
        """Build the error with context taken from a SourceAsset."""
        return cls(
            message,
            file_name=asset.name,
            file_size=asset.size,
            mime_type=asset.mime_type
        )

    @property
    def file_size_mb(self) -> Optional[float]:
        if self.file_size is None:
            return None
        return get_file_size_mb(self.file_size)

    def context(self) -> dict:
        return {
            'error': type(self).__name__,
            'file_name': self.file_name,
            'file_size': self.file_size,
            'mime_type': self.mime_type,
        }


class UnsupportedEnvironment(CompressionError):
    """No raster backend is available to decode or encode images."""


class UnsupportedFormat(CompressionError):
    """The input is neither a raster image type nor a HEIC container."""


class InputTooLarge(CompressionError):
    """The input (or the compressed output) exceeds a hard size ceiling."""


class ConversionUnavailable(CompressionError):
    """The HEIC conversion backend could not be loaded."""


class ConversionFailed(CompressionError):
    """The HEIC conversion backend errored or produced no image."""


class DecodeError(CompressionError):
    """Base class for failures while turning bytes into a bitmap."""


class ImageLoadTimeout(DecodeError):
    pass


class ImageLoadFailed(DecodeError):
    pass


class InvalidImageDimensions(DecodeError):
    pass


class DecodeHandleCreationFailed(DecodeError):
    pass


class EncodeFailed(CompressionError):
    """The encoder returned no bytes for a surface."""
