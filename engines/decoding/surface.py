"""
Surface decoder for webfit (strategy A)

Spools the asset's bytes to a transient temporary file and decodes from
that path. Works with every Pillow build and every input format Pillow
knows, at the cost of holding the full encoded file and the full-size
decoded bitmap at once. That only matters for large inputs, which is why
the selector sends those to the bitmap decoder when it can.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional, Tuple

from . import register_decoder
from .common import open_image, run_decode, DEFAULT_TIMEOUT_S, DEFAULT_RECOMMENDED_MB
from assets import SourceAsset, DecodedBitmap
from errors import DecodeHandleCreationFailed
from utilities import Print, create_error_message


@register_decoder("surface")
class SurfaceDecoderFactory:
    """Factory for creating surface decoder instances."""

    @staticmethod
    def create(config: dict) -> "SurfaceDecoder":
        return SurfaceDecoder(config)


class TransientHandle:
    """
    Temporary file addressing an asset's bytes for the duration of a decode.

    release() deletes the file; only the first call has any effect.
    """

    def __init__(self, path: Path):
        self.path = path
        self.released = False

    @classmethod
    def create(cls, data: bytes, suffix: str = '', directory: Optional[Path] = None) -> "TransientHandle":
        if directory is not None:
            directory.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix='webfit_', suffix=suffix, dir=directory)
        path = Path(name)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
        except BaseException:
            path.unlink(missing_ok=True)
            raise
        return cls(path)

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            Print("WARNING", f"Could not remove decode handle {self.path}: {e}")


class SurfaceDecoder:
    """
    Decode through a temporary file handle.

    Attributes:
        timeout_s: Decode deadline in seconds
        recommended_mb: Size above which failures are blamed on file size
        temp_dir: Directory for transient handles (system default if None)
    """

    def __init__(self, config: dict):
        """
        Initialize the decoder.

        Args:
            config: Configuration dictionary with optional keys:
                - timeout_s: float (default: 60)
                - recommended_file_size_mb: float (default: 10)
                - temp_dir: str (default: system temp directory)
        """
        self.timeout_s = config.get('timeout_s', DEFAULT_TIMEOUT_S)
        self.recommended_mb = config.get('recommended_file_size_mb', DEFAULT_RECOMMENDED_MB)
        temp_dir = config.get('temp_dir')
        self.temp_dir = Path(temp_dir) if temp_dir else None

    def create_handle(self, asset: SourceAsset) -> TransientHandle:
        """
        Raises:
            DecodeHandleCreationFailed: If the temporary file cannot be written
        """
        try:
            return TransientHandle.create(asset.data, Path(asset.name).suffix, self.temp_dir)
        except OSError as e:
            raise DecodeHandleCreationFailed.for_asset(
                create_error_message("Failed to create decode handle", e), asset
            ) from e

    async def decode(
        self,
        asset: SourceAsset,
        size_hint: Optional[Tuple[int, int]] = None
    ) -> DecodedBitmap:
        """
        Decode an asset at full scale.

        size_hint is accepted for interface compatibility and ignored.
        """
        handle = self.create_handle(asset)
        Print("DEBUG", f"Decode handle: {handle.path}")
        try:
            return await run_decode(
                asset,
                lambda: open_image(handle.path),
                self.name,
                timeout_s=self.timeout_s,
                recommended_mb=self.recommended_mb
            )
        finally:
            handle.release()

    @property
    def name(self) -> str:
        """Decoder identifier."""
        return "surface"
