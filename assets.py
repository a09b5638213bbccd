"""
Data model for the webfit compression pipeline.

SourceAsset    - caller-supplied bytes + declared MIME type + file name
DecodedBitmap  - decoded raster handle, released exactly once
RasterSurface  - resized drawable handed to the encoder
CompressionOptions - per-call settings (bounds, quality, budget, format)
EncodedResult  - encoded bytes handed to the upload endpoint
"""

import mimetypes
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image

from utilities import get_file_size_mb

OUTPUT_FORMATS = ('modern', 'legacy')


@dataclass(frozen=True)
class SourceAsset:
    """An input file. Read-only to the pipeline; normalization builds a new one."""
    data: bytes
    mime_type: str = ''
    name: str = ''

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def size_mb(self) -> float:
        return get_file_size_mb(self.size)

    @classmethod
    def from_path(cls, path: Path, mime_type: Optional[str] = None) -> "SourceAsset":
        """Read a file from disk, guessing its MIME type from the name when not given."""
        path = Path(path)
        if mime_type is None:
            mime_type = mimetypes.guess_type(path.name)[0] or ''
        return cls(data=path.read_bytes(), mime_type=mime_type, name=path.name)


class DecodedBitmap:
    """
    Decoded raster handle produced by a decoder.

    Wraps a fully loaded Pillow image. The pipeline draws it onto a surface
    once and then calls close(), whatever the outcome.

    Attributes:
        image: Loaded PIL image (None once released)
        strategy: Name of the decoder that produced it ('surface' or 'bitmap')
    """

    def __init__(self, image: Image.Image, strategy: str):
        self.image = image
        self.strategy = strategy
        self.width, self.height = image.size
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def close(self) -> None:
        if self._released:
            return
        self._released = True
        self.image.close()
        self.image = None

    def __enter__(self) -> "DecodedBitmap":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"DecodedBitmap({self.width}x{self.height}, strategy={self.strategy!r})"


class RasterSurface:
    """Off-screen drawable of fixed pixel size holding the resized image."""

    def __init__(self, image: Image.Image):
        self.image = image
        self.width, self.height = image.size

    def close(self) -> None:
        if self.image is not None:
            self.image.close()
            self.image = None

    def __enter__(self) -> "RasterSurface":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@dataclass
class CompressionOptions:
    """
    Per-call compression settings.

    Attributes:
        max_width: Maximum output width in pixels
        max_height: Maximum output height in pixels
        quality: Initial encode quality (0.0 - 1.0)
        target_size_mb: Byte-size budget for the output, in MB
        format: 'modern' (WebP when supported) or 'legacy' (JPEG)
    """
    max_width: int = 1920
    max_height: int = 1920
    quality: float = 0.85
    target_size_mb: float = 3.5
    format: str = 'modern'

    def __post_init__(self):
        if self.max_width <= 0 or self.max_height <= 0:
            raise ValueError(
                f"Pixel bounds must be positive, got {self.max_width}x{self.max_height}"
            )
        if not 0.0 <= self.quality <= 1.0:
            raise ValueError(f"Quality must be between 0.0 and 1.0, got {self.quality}")
        if self.target_size_mb <= 0:
            raise ValueError(f"Target size must be positive, got {self.target_size_mb} MB")
        if self.format not in OUTPUT_FORMATS:
            raise ValueError(
                f"Unknown output format: '{self.format}'. "
                f"Available formats: {', '.join(OUTPUT_FORMATS)}"
            )

    @classmethod
    def from_config(cls, image_config: dict, **overrides) -> "CompressionOptions":
        """Build options from the 'image' config section, applying non-None overrides."""
        values = {
            'max_width': image_config.get('max_width', 1920),
            'max_height': image_config.get('max_height', 1920),
            'quality': image_config.get('compression_quality', 0.85),
            'target_size_mb': image_config.get('compression_target_size_mb', 3.5),
            'format': image_config.get('format', 'modern'),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class EncodedResult:
    """Encoded output of one pipeline run. The pipeline keeps no reference to it."""
    data: bytes
    mime_type: str
    extension: str
    quality: float
    name: str
    width: int
    height: int
    attempts: int = 1
    last_modified: float = field(default_factory=time.time)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def size_mb(self) -> float:
        return get_file_size_mb(self.size)

    def as_upload_file(self) -> Tuple[str, bytes, str]:
        """(filename, bytes, content type) for the multipart 'file' field."""
        return (self.name, self.data, self.mime_type)
