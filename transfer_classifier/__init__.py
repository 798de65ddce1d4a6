"""
Transfer-learning image classification pipeline.

Loads a labelled image folder, trains a classifier head on top of a frozen
feature extractor, evaluates it and serves single-image predictions.
"""

__version__ = "0.1.0"
