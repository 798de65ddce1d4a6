"""
Classifier training, evaluation and persistence.

Trains a classifier head on features from a frozen extractor, scores it on a
held-out split and stores the result as a self-contained artifact.
"""

from .config import HeadType, RunConfig, TrainingConfig, load_config
from .evaluator import Evaluator, plot_confusion_matrix
from .events import (
    EventDispatcher,
    LoggingObserver,
    TrainingEvent,
    TrainingEventKind,
    TrainingObserver,
)
from .orchestrator import TrainingOrchestrator
from .persistence import ModelPersistence
from .pipeline import PipelineMetadata, TrainedPipeline
from .trainer import HeadWeights, fit_classifier

__all__ = [
    "HeadType",
    "RunConfig",
    "TrainingConfig",
    "load_config",
    "Evaluator",
    "plot_confusion_matrix",
    "EventDispatcher",
    "LoggingObserver",
    "TrainingEvent",
    "TrainingEventKind",
    "TrainingObserver",
    "TrainingOrchestrator",
    "ModelPersistence",
    "PipelineMetadata",
    "TrainedPipeline",
    "HeadWeights",
    "fit_classifier",
]
