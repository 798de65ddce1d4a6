"""
Dataset construction for the transfer classifier pipeline.

This module provides functionality for:
- Enumerating labelled images from a directory tree
- Encoding label strings as integer keys
- Splitting the shuffled dataset into train and test sets
"""

from .config import DatasetConfig
from .encoder import LabelEncoder
from .loader import DatasetLoader
from .splitter import Splitter

__all__ = [
    "DatasetConfig",
    "DatasetLoader",
    "LabelEncoder",
    "Splitter",
]
