"""
panelslicer - Slice detection for comic pages, sprite sheets and assets
=======================================================================

Turns an image into a list of normalized rectangular regions (slices).

Main modules:
- detector: local scan (connected components, merging, gutter splitting) and grid slices
- recognizer: parsing and normalization of external vision-model output
- batch: cancellable, pausable batch orchestrator
- qt_support: PySide6 QImage conversion and signal bridge

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .config import AppConfig, BatchConfig, RecognizerConfig, ScanConfig
from .detector import Region, SliceDetector, generate_grid_slices
from .exceptions import ImageLoadError, RecognizerError, SlicerError, UnparsableRecognizerResult

__all__ = [
    "__version__",
    "AppConfig",
    "BatchConfig",
    "RecognizerConfig",
    "ScanConfig",
    "Region",
    "SliceDetector",
    "generate_grid_slices",
    "SlicerError",
    "ImageLoadError",
    "RecognizerError",
    "UnparsableRecognizerResult",
]
