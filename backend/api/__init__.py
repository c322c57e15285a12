from .base import SourceAdapter
from .congress import CongressAdapter
from .legiscan import LegiScanAdapter

__all__ = [
    "SourceAdapter",
    "CongressAdapter",
    "LegiScanAdapter",
]
