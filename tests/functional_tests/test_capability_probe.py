#!/usr/bin/env python3
"""
Functional Test: Output format capability probe

This test verifies:
1. The probe agrees with Pillow's own WebP feature flag
2. Unsupported types come back as PNG data URIs instead of raising
3. A failing probe reports "unsupported" and never raises
4. The result is cached until reset

Usage:
    pytest tests/functional_tests/test_capability_probe.py
"""

import sys
from pathlib import Path

import pytest
from PIL import Image, features

# Add repo root to path for imports
repo_root = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(repo_root))

from engines.compression import probe
from engines.compression.probe import (
    supports_modern_format,
    reset_capability_cache,
    sniff_mime_type,
    to_data_uri,
)


@pytest.fixture(autouse=True)
def fresh_probe():
    reset_capability_cache()
    yield
    reset_capability_cache()


def test_probe_matches_pillow_webp_support():
    assert supports_modern_format() == features.check('webp')


def test_data_uri_reports_what_was_written():
    image = Image.new('RGB', (1, 1))

    assert to_data_uri(image, 'image/png').startswith('data:image/png;base64,')
    assert to_data_uri(image, 'image/jpeg').startswith('data:image/jpeg;base64,')


def test_unknown_type_falls_back_to_png():
    image = Image.new('RGB', (1, 1))

    assert to_data_uri(image, 'image/x-made-up').startswith('data:image/png')


def test_probe_failure_means_unsupported(monkeypatch):
    def broken_new(*args, **kwargs):
        raise RuntimeError("no raster backend")

    monkeypatch.setattr(probe.Image, 'new', broken_new)

    assert supports_modern_format() is False


def test_probe_result_is_cached(monkeypatch):
    calls = []

    def counting_probe():
        calls.append(1)
        return True

    monkeypatch.setattr(probe, '_probe_modern_format', counting_probe)

    assert supports_modern_format() is True
    assert supports_modern_format() is True
    assert len(calls) == 1

    reset_capability_cache()
    supports_modern_format()
    assert len(calls) == 2


@pytest.mark.parametrize("data,expected", [
    (b'RIFF\x00\x00\x00\x00WEBPVP8 ', 'image/webp'),
    (b'\xff\xd8\xff\xe0rest', 'image/jpeg'),
    (b'\x89PNG\r\n\x1a\nrest', 'image/png'),
    (b'GIF89a', 'image/gif'),
    (b'hello', 'application/octet-stream'),
    (b'', 'application/octet-stream'),
])
def test_sniff_mime_type(data, expected):
    assert sniff_mime_type(data) == expected
