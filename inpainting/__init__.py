"""
Package initialization for the inpainting graph driver.
"""

# Import main classes for easy access
from .config import Config, load_config
from .exceptions import InpaintingError
from .mask_compositor import MaskCompositor, MaskSet
from .pipeline import InpaintingPipeline, RunSummary

__version__ = "1.0.0"

__all__ = [
    'Config',
    'load_config',
    'InpaintingError',
    'MaskCompositor',
    'MaskSet',
    'InpaintingPipeline',
    'RunSummary',
]
