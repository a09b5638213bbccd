#!/usr/bin/env python3
"""
webfit: adaptive image transcoding under a pixel bound and a byte budget.

This is the main orchestrator that wires together all webfit components to
turn an arbitrary user photo (any resolution, JPEG/PNG/WebP/..., or HEIC
straight off a phone, up to 50 MB) into a web-safe file ready for upload.

Architecture:
- Factory pattern for decoders and output compressors
- Protocol-based contracts for type safety
- Blocking Pillow work runs in worker threads; the pipeline is a coroutine

Pipeline stages:
1. Validate environment, size and format
2. HEIC -> JPEG normalization (only for HEIC inputs)
3. Decode (bitmap decoder for large files, surface decoder otherwise,
   falling back to the surface decoder if the bitmap decoder fails)
4. Resize to the pixel bounds, keeping the aspect ratio
5. Encode as WebP (JPEG if unsupported), lowering quality until the
   result fits the byte budget or quality reaches 0.5

Usage:
    from webfit import CompressionPipeline
    from assets import SourceAsset

    pipeline = CompressionPipeline()
    result = await pipeline.compress(SourceAsset.from_path(Path("IMG_0001.HEIC")))

Or from command line:
    python webfit.py IMG_0001.HEIC out.webp --max-width 1600
"""

import asyncio
import json
import re
from pathlib import Path
from typing import Optional
from datetime import datetime

from assets import SourceAsset, CompressionOptions, EncodedResult, DecodedBitmap
from engines.compression import get_compressor, FORMAT_COMPRESSORS
from engines.compression.base import ImageCompressor
from engines.compression.probe import supports_modern_format
from engines.decoding import select_decoder, get_decoder
from engines.decoding.common import set_pixel_ceiling, DEFAULT_MAX_IMAGE_PIXELS
from errors import (
    CompressionError,
    UnsupportedEnvironment,
    UnsupportedFormat,
    InputTooLarge,
    DecodeError,
)
from processors import (
    QualityBudgetEncoder,
    calculate_resized_dimensions,
    draw_to_surface,
    canvas_backend_available,
    is_heic_file,
    normalize_asset,
)
from utilities import Print, get_file_size_mb, mb_to_bytes, process_memory_usage

# Some platforms report an empty or generic type; fall back to the extension
_IMAGE_NAME_PATTERN = re.compile(r'\.(jpg|jpeg|png|gif|webp|bmp|svg|heic|heif)$', re.IGNORECASE)
_GENERIC_MIME_TYPES = ('', 'application/octet-stream')

DEFAULT_IMAGE_CONFIG = {
    'compression_target_size_mb': 3.5,
    'max_file_size_mb': 4,
    'recommended_file_size_mb': 10,
    'max_input_size_mb': 50,
}


def is_image_file(asset: SourceAsset) -> bool:
    """
    Whether an asset looks like an image the pipeline accepts.

    Broader than the pipeline's own format check: an empty or generic MIME
    type is accepted when the file name has an image extension.
    """
    mime_type = asset.mime_type or ''
    if mime_type.startswith('image/'):
        return True
    if is_heic_file(asset):
        return True
    if mime_type in _GENERIC_MIME_TYPES:
        return bool(_IMAGE_NAME_PATTERN.search(asset.name or ''))
    return False


def needs_compression(asset, max_size_mb: float = DEFAULT_IMAGE_CONFIG['compression_target_size_mb']) -> bool:
    """Whether a file (anything with .size in bytes) is over the compression target."""
    return get_file_size_mb(asset.size) > max_size_mb


def is_too_large(asset, max_size_mb: float = DEFAULT_IMAGE_CONFIG['max_file_size_mb']) -> bool:
    """Whether a file (anything with .size in bytes) is over the upload ceiling."""
    return get_file_size_mb(asset.size) > max_size_mb


def oversize_warning(
    asset: SourceAsset,
    recommended_mb: float = DEFAULT_IMAGE_CONFIG['recommended_file_size_mb']
) -> Optional[str]:
    """
    Warning to show before compressing a file above the recommended size.

    Returns:
        Message, or None when the file is within the recommended size
    """
    size_mb = get_file_size_mb(asset.size)
    if size_mb <= recommended_mb:
        return None
    return (
        f"The selected image is {size_mb:.2f}MB. "
        f"The recommended size is {recommended_mb}MB or less. "
        f"Processing may be slow or fail."
    )


class CompressionPipeline:
    """
    Main orchestrator for webfit image compression.

    Each compress() call is independent: it owns its asset, bitmap and
    surface and releases them before returning or raising. The only state
    shared between calls is the cached WebP probe and the HEIC backend.

    Attributes:
        config: Loaded configuration dictionary
        image_config: The 'image' section (defaults and size ceilings)
        decoder_config: Settings passed to decoder factories
        budget_encoder: Quality search used for the final encode
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize pipeline with configuration.

        Args:
            config_path: Path to config.json. If None, uses default location.
        """
        self.config = self._load_config(config_path)
        self.image_config = {**DEFAULT_IMAGE_CONFIG, **self.config.get('image', {})}

        processing = self.config.get('processing', {})
        self.decoder_config = {
            **self.config.get('decoders', {}),
            'recommended_file_size_mb': self.image_config['recommended_file_size_mb'],
            'temp_dir': processing.get('temp_dir'),
        }
        set_pixel_ceiling(self.decoder_config.get('max_image_pixels', DEFAULT_MAX_IMAGE_PIXELS))
        self.budget_encoder = QualityBudgetEncoder(
            min_quality=processing.get('min_quality', 0.5),
            quality_step=processing.get('quality_step', 0.1)
        )

    def _load_config(self, config_path: Optional[Path]) -> dict:
        """Load configuration from JSON file."""
        if config_path is None:
            # Default: look for config relative to this file
            config_path = Path(__file__).parent / "config" / "config.json"

        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {config_path}\n"
                f"Create config/config.json or specify path with config_path parameter."
            )

        with open(config_path) as f:
            config = json.load(f)

        Print("DEBUG", f"Loaded configuration v{config.get('version', 'unknown')}")
        return config

    def default_options(self, **overrides) -> CompressionOptions:
        """CompressionOptions from the config, with non-None overrides applied."""
        return CompressionOptions.from_config(self.image_config, **overrides)

    def output_compressor(self, options: CompressionOptions) -> ImageCompressor:
        """
        WebP when requested and supported, JPEG otherwise.
        """
        if options.format == 'modern' and supports_modern_format():
            name = FORMAT_COMPRESSORS['modern']
        else:
            if options.format == 'modern':
                Print("INFO", "WebP not supported, falling back to JPEG")
            name = FORMAT_COMPRESSORS['legacy']
        return get_compressor(name, self.config.get('compression', {}).get(name, {}))

    def validate(self, asset: SourceAsset) -> None:
        """
        Check preconditions before any conversion or decode work.

        Raises:
            UnsupportedEnvironment: If Pillow cannot allocate images
            InputTooLarge: If the asset exceeds the input ceiling
            UnsupportedFormat: If the asset is neither image/* nor HEIC
        """
        if not canvas_backend_available():
            raise UnsupportedEnvironment.for_asset(
                "Image compression requires a working Pillow installation", asset
            )

        max_input_mb = self.image_config['max_input_size_mb']
        if asset.size > mb_to_bytes(max_input_mb):
            raise InputTooLarge.for_asset(
                f"File is too large: {asset.size_mb:.2f}MB (limit {max_input_mb}MB)", asset
            )

        if not (asset.mime_type or '').startswith('image/') and not is_heic_file(asset):
            raise UnsupportedFormat.for_asset(
                f"Unsupported file format: {asset.mime_type or 'unknown'}", asset
            )

    async def decode(self, asset: SourceAsset, options: CompressionOptions) -> DecodedBitmap:
        """
        Decode with the selected strategy.

        A failed bitmap decode is retried once with the surface decoder;
        surface decoder failures propagate.
        """
        decoder = select_decoder(asset, self.decoder_config)
        size_hint = (options.max_width, options.max_height)
        Print("DEBUG", f"Decoder: {decoder.name} ({asset.size_mb:.2f}MB input)")

        try:
            return await decoder.decode(asset, size_hint=size_hint)
        except DecodeError as e:
            if decoder.name != 'bitmap':
                raise
            Print("WARNING", f"Bitmap decode failed, retrying with surface decoder: {e}")

        fallback = get_decoder('surface', self.decoder_config)
        return await fallback.decode(asset, size_hint=size_hint)

    async def compress(
        self,
        asset: SourceAsset,
        options: Optional[CompressionOptions] = None
    ) -> EncodedResult:
        """
        Compress one image.

        Args:
            asset: Input file (never modified)
            options: Bounds, quality, budget and format (config defaults if None)

        Returns:
            EncodedResult with the encoded bytes, MIME type, extension and
            the quality that was used

        Raises:
            UnsupportedEnvironment, InputTooLarge, UnsupportedFormat,
            ConversionUnavailable, ConversionFailed, DecodeError subclasses,
            EncodeFailed
        """
        if options is None:
            options = self.default_options()

        start_time = datetime.now()
        Print("STARTING", f"Compressing: {asset.name or '<unnamed>'} ({asset.size_mb:.2f}MB, "
                          f"{asset.mime_type or 'unknown type'})")

        self.validate(asset)

        processed = asset
        if is_heic_file(asset):
            Print("PROGRESS", "Converting HEIC to JPEG...")
            processed = await normalize_asset(asset)

        compressor = self.output_compressor(options)

        bitmap = await self.decode(processed, options)
        Print("DEBUG", f"Decoded {bitmap.width}x{bitmap.height} via {bitmap.strategy}; {process_memory_usage()}")
        try:
            width, height = calculate_resized_dimensions(
                bitmap.width, bitmap.height, options.max_width, options.max_height
            )
            if (width, height) != (bitmap.width, bitmap.height):
                Print("DEBUG", f"Resizing {bitmap.width}x{bitmap.height} -> {round(width)}x{round(height)}")
            surface = draw_to_surface(bitmap, width, height)
        finally:
            # Bitmaps hold the full decoded image; never leave one behind
            bitmap.close()

        try:
            result = await self.budget_encoder.encode(
                surface,
                compressor,
                options.quality,
                options.target_size_mb,
                processed.name
            )
        finally:
            surface.close()

        processing_time = (datetime.now() - start_time).total_seconds()
        ratio = asset.size / result.size if result.size > 0 else 0
        Print("COMPLETED",
            f"{result.name}: {result.width}x{result.height} {result.mime_type}, "
            f"{result.size_mb:.2f}MB at quality {result.quality} "
            f"({ratio:.1f}x reduction, {processing_time:.2f}s)"
        )
        return result

    def compress_sync(
        self,
        asset: SourceAsset,
        options: Optional[CompressionOptions] = None
    ) -> EncodedResult:
        """Run compress() to completion from synchronous code."""
        return asyncio.run(self.compress(asset, options))

    async def prepare_upload(
        self,
        asset: SourceAsset,
        options: Optional[CompressionOptions] = None
    ) -> EncodedResult:
        """
        Compress and check the result against the upload ceiling.

        Raises:
            InputTooLarge: If the compressed result is still above max_file_size_mb
        """
        result = await self.compress(asset, options)
        max_file_size_mb = self.image_config['max_file_size_mb']
        if is_too_large(result, max_file_size_mb):
            raise InputTooLarge(
                f"Compressed image is too large ({result.size_mb:.2f}MB, limit "
                f"{max_file_size_mb}MB). Choose another image or reduce its size and try again.",
                file_name=result.name,
                file_size=result.size,
                mime_type=result.mime_type
            )
        return result


def main():
    """Command-line entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description='webfit: resize and compress an image for web upload',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python webfit.py photo.jpg
  python webfit.py IMG_0001.HEIC out/product.webp
  python webfit.py scan.png --format legacy --target-mb 1 --max-width 1200
        """
    )

    parser.add_argument('input', type=Path, help='Input image file')
    parser.add_argument('output', type=Path, nargs='?', default=None,
                        help='Output file (default: next to input, with the new extension)')
    parser.add_argument('--max-width', type=int, default=None, help='Maximum width in pixels')
    parser.add_argument('--max-height', type=int, default=None, help='Maximum height in pixels')
    parser.add_argument('--quality', type=float, default=None, help='Initial quality (0.0 - 1.0)')
    parser.add_argument('--target-mb', type=float, default=None, help='Byte budget in MB')
    parser.add_argument('--format', choices=['modern', 'legacy'], default=None,
                        help='modern = WebP when supported, legacy = JPEG')
    parser.add_argument('--mime-type', default=None, help='Override the guessed input MIME type')
    parser.add_argument('--config', type=Path, default=None, help='Path to config.json')

    args = parser.parse_args()

    try:
        pipeline = CompressionPipeline(config_path=args.config)
        options = pipeline.default_options(
            max_width=args.max_width,
            max_height=args.max_height,
            quality=args.quality,
            target_size_mb=args.target_mb,
            format=args.format
        )

        if not args.input.exists():
            raise FileNotFoundError(f"Input image not found: {args.input}")
        asset = SourceAsset.from_path(args.input, mime_type=args.mime_type)

        warning = oversize_warning(asset, pipeline.image_config['recommended_file_size_mb'])
        if warning:
            Print("WARNING", warning)

        result = pipeline.compress_sync(asset, options)

        output = args.output or args.input.parent / result.name
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(result.data)
        Print("SUCCESS", f"Saved: {output}")

        return 0

    except FileNotFoundError as e:
        Print("FAILURE", str(e))
        return 1
    except ValueError as e:
        Print("FAILURE", f"Invalid option: {e}")
        return 1
    except CompressionError as e:
        Print("FAILURE", f"{type(e).__name__}: {e}")
        return 2
    except KeyboardInterrupt:
        Print("WARNING", "Interrupted by user")
        return 130
    except Exception as e:
        Print("FAILURE", f"Unexpected error: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    import sys
    sys.exit(main())
