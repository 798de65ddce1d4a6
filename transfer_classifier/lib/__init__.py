"""
Utility library for the transfer classifier pipeline.

This module provides the shared data models, errors and helpers used across
the pipeline components.
"""

from .context import PipelineContext
from .errors import (
    EncodingError,
    EvaluationError,
    InvalidInputError,
    InvalidSplitError,
    NotFoundError,
    PersistenceError,
    PipelineError,
    TrainingFailure,
)
from .logger import setup_logger
from .models import (
    DEFAULT_IMAGE_EXTENSIONS,
    EvaluationMetrics,
    ImageFormat,
    ImageRecord,
    LabeledKeyRecord,
    PredictionResult,
    SplitResult,
)

__all__ = [
    "PipelineContext",
    "setup_logger",
    "PipelineError",
    "NotFoundError",
    "EncodingError",
    "InvalidSplitError",
    "TrainingFailure",
    "EvaluationError",
    "PersistenceError",
    "InvalidInputError",
    "DEFAULT_IMAGE_EXTENSIONS",
    "ImageFormat",
    "ImageRecord",
    "LabeledKeyRecord",
    "SplitResult",
    "PredictionResult",
    "EvaluationMetrics",
]
