#!/usr/bin/env python3
"""
Functional Test: Size helpers, error context, previews and logging

This test verifies:
1. Byte/MB conversions and error message assembly
2. Errors carry file context for user-facing messages
3. Preview references can be created, listed and revoked
4. Print never raises, whatever the log type

Usage:
    pytest tests/functional_tests/test_utilities.py
"""

import sys
from pathlib import Path

import pytest

# Add repo root to path for imports
repo_root = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(repo_root))

from assets import SourceAsset, EncodedResult, DecodedBitmap
from errors import CompressionError, ConversionFailed, InputTooLarge
from preview import create_preview, revoke_preview, active_previews
from utilities import Print, get_file_size_mb, mb_to_bytes, create_error_message, process_memory_usage


def test_file_size_mb():
    assert get_file_size_mb(5 * 1024 * 1024) == 5.0
    assert get_file_size_mb(0) == 0.0
    assert get_file_size_mb(512 * 1024) == 0.5


def test_mb_to_bytes():
    assert mb_to_bytes(3.5) == 3670016
    assert mb_to_bytes(50) == 50 * 1024 * 1024


def test_create_error_message():
    assert create_error_message("HEIC conversion failed", ValueError("bad box")) == "HEIC conversion failed: bad box"
    assert create_error_message("Load failed", "timeout") == "Load failed: timeout"
    assert create_error_message("Load failed", None) == "Load failed: None"


def test_errors_carry_asset_context():
    asset = SourceAsset(data=b'\0' * 2048, mime_type='image/heic', name='IMG_0001.HEIC')

    error = ConversionFailed.for_asset("HEIC conversion failed: boom", asset)

    assert isinstance(error, CompressionError)
    assert isinstance(error, RuntimeError)
    assert str(error) == "HEIC conversion failed: boom"
    assert error.context() == {
        'error': 'ConversionFailed',
        'file_name': 'IMG_0001.HEIC',
        'file_size': 2048,
        'mime_type': 'image/heic',
    }
    assert error.file_size_mb == pytest.approx(2048 / (1024 * 1024))
    assert InputTooLarge("x").file_size_mb is None


def test_source_asset_from_path(tmp_path):
    path = tmp_path / "shot.PNG"
    path.write_bytes(b'\x89PNG\r\n\x1a\n')

    asset = SourceAsset.from_path(path)
    assert asset.name == 'shot.PNG'
    assert asset.mime_type == 'image/png'
    assert asset.size == 8

    heic = tmp_path / "IMG_0001.HEIC"
    heic.write_bytes(b'')
    assert SourceAsset.from_path(heic, mime_type='').mime_type == ''


def test_preview_lifecycle(tmp_path):
    result = EncodedResult(data=b'RIFF....WEBP', mime_type='image/webp', extension='.webp',
                           quality=0.85, name='a.webp', width=1, height=1)

    uri = create_preview(result, directory=tmp_path)
    path = Path(uri[len('file://'):])

    assert uri.startswith('file://') and uri.endswith('.webp')
    assert uri in active_previews()
    assert path.read_bytes() == result.data

    assert revoke_preview(uri) is True
    assert uri not in active_previews()
    assert not path.exists()
    assert revoke_preview(uri) is False


def test_decoded_bitmap_context_manager():
    from PIL import Image

    with DecodedBitmap(Image.new('RGB', (3, 2)), 'bitmap') as bitmap:
        assert (bitmap.width, bitmap.height) == (3, 2)
    assert bitmap.released
    assert bitmap.image is None


def test_print_handles_any_log_type(capsys):
    Print("SUCCESS", "done")
    Print("unknown", "still printed")

    output = capsys.readouterr().out
    assert "done" in output
    assert "still printed" in output


def test_process_memory_usage():
    assert process_memory_usage().startswith("Process Memory Usage:")
