"""
Image processors for webfit

Stages that sit between decoding and the final encoded file.
"""

from .budget import QualityBudgetEncoder
from .canvas import calculate_resized_dimensions, draw_to_surface, canvas_backend_available
from .heic import is_heic_file, normalize, normalize_asset

__all__ = [
    'QualityBudgetEncoder',
    'calculate_resized_dimensions',
    'draw_to_surface',
    'canvas_backend_available',
    'is_heic_file',
    'normalize',
    'normalize_asset',
]
