#!/usr/bin/env python3
"""
Functional Test: Decode strategies and selection

This test verifies:
1. Small files use the surface decoder, large files the bitmap decoder
2. The bitmap decoder is skipped when scaled decoding is unavailable
3. Both decoders produce loaded bitmaps with the right dimensions
4. The bitmap decoder decodes large JPEGs at a reduced scale
5. Surface decode handles are released on success, failure and timeout
6. Failures map to ImageLoadFailed / ImageLoadTimeout /
   InvalidImageDimensions / DecodeHandleCreationFailed

Usage:
    pytest tests/functional_tests/test_decoders.py
"""

import asyncio
import io
import sys
import time
from pathlib import Path

import pytest
from PIL import Image

# Add repo root to path for imports
repo_root = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(repo_root))

import engines.decoding as decoding
from assets import SourceAsset
from engines.decoding import select_decoder, get_decoder
from engines.decoding import surface as surface_module
from engines.decoding.common import load_error_message, set_pixel_ceiling, DEFAULT_MAX_IMAGE_PIXELS
from errors import (
    DecodeError,
    ImageLoadFailed,
    ImageLoadTimeout,
    InvalidImageDimensions,
    DecodeHandleCreationFailed,
)
from utilities import Print

MB = 1024 * 1024


def encode(image, format_name, **params):
    buffer = io.BytesIO()
    image.save(buffer, format=format_name, **params)
    return buffer.getvalue()


def png_asset(size=(200, 150), name='photo.png'):
    return SourceAsset(data=encode(Image.new('RGB', size, 'teal'), 'PNG'), mime_type='image/png', name=name)


def jpeg_asset(size=(4000, 3000), name='photo.jpg'):
    return SourceAsset(data=encode(Image.linear_gradient('L').resize(size).convert('RGB'), 'JPEG', quality=90),
                       mime_type='image/jpeg', name=name)


class Tracker:
    """Records the transient handles the surface decoder creates."""

    def __init__(self, monkeypatch):
        self.handles = []
        original = surface_module.SurfaceDecoder.create_handle

        def tracking_create_handle(decoder, asset):
            handle = original(decoder, asset)
            self.handles.append(handle)
            return handle

        monkeypatch.setattr(surface_module.SurfaceDecoder, 'create_handle', tracking_create_handle)

    def all_released(self):
        return all(h.released and not h.path.exists() for h in self.handles)


# =============================================================================
# Selection
# =============================================================================

def test_small_files_use_surface_decoder():
    decoder = select_decoder(png_asset(), {})
    assert decoder.name == 'surface'


def test_large_files_use_bitmap_decoder(monkeypatch):
    monkeypatch.setattr(decoding, 'bitmap_decode_supported', lambda: True)
    asset = SourceAsset(data=b'\0' * (5 * MB + 1), mime_type='image/jpeg', name='big.jpg')

    assert select_decoder(asset, {}).name == 'bitmap'


def test_threshold_is_exclusive(monkeypatch):
    monkeypatch.setattr(decoding, 'bitmap_decode_supported', lambda: True)
    asset = SourceAsset(data=b'\0' * (5 * MB), mime_type='image/jpeg', name='edge.jpg')

    assert select_decoder(asset, {}).name == 'surface'


def test_large_files_use_surface_decoder_without_support(monkeypatch):
    monkeypatch.setattr(decoding, 'bitmap_decode_supported', lambda: False)
    asset = SourceAsset(data=b'\0' * (6 * MB), mime_type='image/jpeg', name='big.jpg')

    assert select_decoder(asset, {}).name == 'surface'


def test_threshold_comes_from_config(monkeypatch):
    monkeypatch.setattr(decoding, 'bitmap_decode_supported', lambda: True)

    assert select_decoder(png_asset(), {'bitmap_threshold_mb': 0}).name == 'bitmap'


def test_unknown_decoder_name():
    with pytest.raises(ValueError, match="Available decoders"):
        get_decoder('canvas', {})


# =============================================================================
# Decoding
# =============================================================================

@pytest.mark.parametrize("name", ['surface', 'bitmap'])
def test_decoders_produce_loaded_bitmaps(name):
    decoder = get_decoder(name, {})

    bitmap = asyncio.run(decoder.decode(png_asset((200, 150))))
    try:
        assert (bitmap.width, bitmap.height) == (200, 150)
        assert bitmap.strategy == name
    finally:
        bitmap.close()
    assert bitmap.released
    bitmap.close()


def test_bitmap_decoder_uses_reduced_scale_for_jpeg():
    bitmap = asyncio.run(get_decoder('bitmap', {}).decode(jpeg_asset((4000, 3000)), size_hint=(1000, 1000)))
    try:
        Print("INFO", f"Drafted 4000x3000 to {bitmap.width}x{bitmap.height}")
        assert bitmap.width < 4000
        assert bitmap.width >= 1000 and bitmap.height >= 1000
        assert bitmap.width * 3 == bitmap.height * 4
    finally:
        bitmap.close()


def test_pixel_ceiling_admits_large_phone_photos():
    assert Image.MAX_IMAGE_PIXELS == DEFAULT_MAX_IMAGE_PIXELS
    assert 12240 * 16320 < DEFAULT_MAX_IMAGE_PIXELS


@pytest.mark.parametrize("name", ['bitmap', 'surface'])
def test_200_megapixel_jpeg_decodes(name):
    source = Image.new('L', (12240, 16320), 128)
    asset = SourceAsset(data=encode(source, 'JPEG', quality=80), mime_type='image/jpeg', name='200mp.jpg')
    source.close()

    bitmap = asyncio.run(get_decoder(name, {}).decode(asset, size_hint=(1920, 1920)))
    try:
        Print("INFO", f"{name} decoded 12240x16320 as {bitmap.width}x{bitmap.height}")
        assert bitmap.width * 4 == bitmap.height * 3
        if name == 'bitmap':
            assert bitmap.width < 12240
    finally:
        bitmap.close()


def test_pixel_ceiling_is_configurable(monkeypatch):
    monkeypatch.setattr(Image, 'MAX_IMAGE_PIXELS', Image.MAX_IMAGE_PIXELS)
    set_pixel_ceiling(100)
    asset = png_asset((300, 300))

    with pytest.raises(ImageLoadFailed):
        asyncio.run(get_decoder('surface', {}).decode(asset))


def test_surface_decoder_ignores_size_hint():
    bitmap = asyncio.run(get_decoder('surface', {}).decode(jpeg_asset((2400, 1800)), size_hint=(500, 500)))
    try:
        assert (bitmap.width, bitmap.height) == (2400, 1800)
    finally:
        bitmap.close()


def test_exif_orientation_is_applied():
    image = Image.new('RGB', (300, 100), 'white')
    exif = Image.Exif()
    exif[0x0112] = 6  # rotate 90 CW on display
    asset = SourceAsset(data=encode(image, 'JPEG', exif=exif.tobytes()), mime_type='image/jpeg', name='r.jpg')

    bitmap = asyncio.run(get_decoder('surface', {}).decode(asset))
    try:
        assert (bitmap.width, bitmap.height) == (100, 300)
    finally:
        bitmap.close()


# =============================================================================
# Failures and handle release
# =============================================================================

def test_surface_handle_released_on_success(monkeypatch):
    tracker = Tracker(monkeypatch)

    bitmap = asyncio.run(get_decoder('surface', {}).decode(png_asset()))
    bitmap.close()

    assert len(tracker.handles) == 1
    assert tracker.all_released()


@pytest.mark.parametrize("name", ['surface', 'bitmap'])
def test_garbage_raises_image_load_failed_with_format_hint(monkeypatch, name):
    tracker = Tracker(monkeypatch)
    asset = SourceAsset(data=b'definitely not an image', mime_type='image/png', name='broken.png')

    with pytest.raises(ImageLoadFailed) as excinfo:
        asyncio.run(get_decoder(name, {}).decode(asset))

    assert "file format (image/png)" in str(excinfo.value)
    assert excinfo.value.file_size == asset.size
    assert tracker.all_released()


def test_load_error_message_depends_on_recommended_size():
    small = SourceAsset(data=b'\0' * 10, mime_type='', name='a')
    large = SourceAsset(data=b'\0' * (11 * MB), mime_type='image/jpeg', name='b.jpg')

    assert "file format (unknown)" in load_error_message(small, 10)
    message = load_error_message(large, 10)
    assert "too large (11.00MB)" in message
    assert "10MB or less" in message


def test_timeout_raises_and_releases_handle(monkeypatch):
    tracker = Tracker(monkeypatch)

    def slow_open(source, size_hint=None):
        time.sleep(0.5)
        return Image.new('RGB', (10, 10))

    monkeypatch.setattr(surface_module, 'open_image', slow_open)
    decoder = get_decoder('surface', {'timeout_s': 0.05})

    with pytest.raises(ImageLoadTimeout) as excinfo:
        asyncio.run(decoder.decode(png_asset()))

    assert "timed out" in str(excinfo.value)
    assert len(tracker.handles) == 1
    assert tracker.all_released()


def test_zero_dimension_raises_invalid_dimensions(monkeypatch):
    class EmptyImage:
        size = (0, 120)
        closed = False

        def close(self):
            self.closed = True

    empty = EmptyImage()
    monkeypatch.setattr(surface_module, 'open_image', lambda source, size_hint=None: empty)

    with pytest.raises(InvalidImageDimensions):
        asyncio.run(get_decoder('surface', {}).decode(png_asset()))
    assert empty.closed


def test_invalid_dimensions_is_not_a_load_failure():
    assert issubclass(InvalidImageDimensions, DecodeError)
    assert not issubclass(InvalidImageDimensions, ImageLoadFailed)


def test_handle_creation_failure(monkeypatch):
    def failing_create(data, suffix='', directory=None):
        raise PermissionError("read-only file system")

    monkeypatch.setattr(surface_module.TransientHandle, 'create', staticmethod(failing_create))

    with pytest.raises(DecodeHandleCreationFailed) as excinfo:
        asyncio.run(get_decoder('surface', {}).decode(png_asset()))

    assert "read-only file system" in str(excinfo.value)


def test_handle_release_is_idempotent(tmp_path):
    handle = surface_module.TransientHandle.create(b'abc', '.png', tmp_path / 'handles')
    assert handle.path.read_bytes() == b'abc'

    handle.release()
    handle.release()

    assert handle.released
    assert not handle.path.exists()
