"""
Bitmap Decoder Registry for webfit

Factory pattern with decorator-based registration, plus the size-based
strategy selection used by the pipeline.

Usage:
    decoder = select_decoder(asset, config)
    bitmap = await decoder.decode(asset, size_hint=(1920, 1920))
"""

from typing import Dict, Callable

from PIL import features

from .base import BitmapDecoder
from assets import SourceAsset
from utilities import mb_to_bytes

# Global registry of bitmap decoder factories
DECODER_REGISTRY: Dict[str, Callable[[dict], BitmapDecoder]] = {}

DEFAULT_BITMAP_THRESHOLD_MB = 5


def register_decoder(name: str):
    """
    Decorator to register bitmap decoder factories.

    Args:
        name: Unique identifier for this decoder

    Returns:
        Decorator function that registers the factory class
    """
    def decorator(factory_class):
        DECODER_REGISTRY[name] = factory_class.create
        return factory_class
    return decorator


def get_decoder(name: str, config: dict) -> BitmapDecoder:
    """
    Get a bitmap decoder instance by name.

    Args:
        name: Decoder identifier (must be registered)
        config: Decoder configuration dictionary

    Returns:
        Initialized decoder instance

    Raises:
        ValueError: If decoder name is not registered
    """
    if name not in DECODER_REGISTRY:
        available = ', '.join(DECODER_REGISTRY.keys()) if DECODER_REGISTRY else 'none'
        raise ValueError(
            f"Unknown decoder: '{name}'. "
            f"Available decoders: {available}"
        )
    return DECODER_REGISTRY[name](config)


def bitmap_decode_supported() -> bool:
    """
    Whether the reduced-scale bitmap decoder can do its job here.

    Scaled decoding is a libjpeg feature, so the strategy is only worth
    picking when Pillow was built with the JPEG codec.
    """
    return features.check_codec('jpg')


def select_decoder(asset: SourceAsset, config: dict) -> BitmapDecoder:
    """
    Pick the decode strategy for an asset.

    Large inputs (above 'bitmap_threshold_mb', default 5 MB) go to the
    bitmap decoder when it is supported; everything else uses the surface
    decoder, which works everywhere.

    Args:
        asset: Input file
        config: Merged decoder configuration

    Returns:
        Decoder instance
    """
    threshold = mb_to_bytes(config.get('bitmap_threshold_mb', DEFAULT_BITMAP_THRESHOLD_MB))
    if bitmap_decode_supported() and asset.size > threshold:
        return get_decoder('bitmap', config)
    return get_decoder('surface', config)


# Import decoders to trigger registration
from . import surface  # noqa: E402,F401
from . import bitmap  # noqa: E402,F401
