"""Extractor adapters for ModelEyes.

Extractors turn a live user interface into UIState snapshots. The engine
only depends on the UIStateExtractor protocol.
"""

from modeleyes.adapters.extractor import (
    StaticExtractor,
    UIStateExtractor,
    VersionGenerator,
)

__all__ = [
    "StaticExtractor",
    "UIStateExtractor",
    "VersionGenerator",
]
