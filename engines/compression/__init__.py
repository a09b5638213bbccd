"""
Image Compressor Registry for webfit

Factory pattern with decorator-based registration.

Usage:
    # In compressor implementation:
    @register_compressor("webp")
    class WebPCompressorFactory:
        @staticmethod
        def create(config: dict) -> ImageCompressor:
            return WebPCompressor(config)

    # To get a compressor:
    compressor = get_compressor("webp", config)
"""

from typing import Dict, Callable
from .base import ImageCompressor

# Global registry of image compressor factories
COMPRESSOR_REGISTRY: Dict[str, Callable[[dict], ImageCompressor]] = {}

# Output format requested by the caller -> registered compressor name
FORMAT_COMPRESSORS = {
    'modern': 'webp',
    'legacy': 'jpeg',
}


def register_compressor(name: str):
    """
    Decorator to register image compressor factories.

    Args:
        name: Unique identifier for this compressor

    Returns:
        Decorator function that registers the factory class
    """
    def decorator(factory_class):
        COMPRESSOR_REGISTRY[name] = factory_class.create
        return factory_class
    return decorator


def get_compressor(name: str, config: dict) -> ImageCompressor:
    """
    Get an image compressor instance by name.

    Args:
        name: Compressor identifier (must be registered)
        config: Compressor-specific configuration dictionary

    Returns:
        Initialized image compressor instance

    Raises:
        ValueError: If compressor name is not registered
    """
    if name not in COMPRESSOR_REGISTRY:
        available = ', '.join(COMPRESSOR_REGISTRY.keys()) if COMPRESSOR_REGISTRY else 'none'
        raise ValueError(
            f"Unknown compressor: '{name}'. "
            f"Available compressors: {available}"
        )
    return COMPRESSOR_REGISTRY[name](config)


def codec_quality(quality: float) -> int:
    """Map a 0.0 - 1.0 quality onto Pillow's 1 - 100 scale."""
    return max(1, min(100, int(round(quality * 100))))


# Import compressors to trigger registration
from . import jpeg  # noqa: E402,F401
from . import webp  # noqa: E402,F401
