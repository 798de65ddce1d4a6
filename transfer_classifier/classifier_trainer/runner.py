from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from transfer_classifier.dataset_builder import DatasetLoader, LabelEncoder, Splitter
from transfer_classifier.feature_extractor import build_feature_extractor
from transfer_classifier.lib import (
    EvaluationMetrics,
    PipelineContext,
    PredictionResult,
    setup_logger,
)
from transfer_classifier.predictor.service import PredictionService

from .config import RunConfig
from .evaluator import Evaluator
from .events import LoggingObserver, TrainingObserver
from .orchestrator import TrainingOrchestrator
from .persistence import ModelPersistence
from .pipeline import TrainedPipeline

logger = setup_logger(__name__)


class RunResult(BaseModel):
    """Everything a pipeline run produced."""

    model_config = ConfigDict(arbitrary_types_allowed=True, protected_namespaces=())

    pipeline: TrainedPipeline
    metrics: EvaluationMetrics
    model_path: Path
    train_size: int
    test_size: int
    sample_image: Optional[str] = None
    sample_prediction: Optional[PredictionResult] = None


def run_pipeline(
    config: RunConfig,
    observers: Optional[Iterable[TrainingObserver]] = None,
) -> RunResult:
    """
    Load, encode, split, train, evaluate, save and try one prediction.

    Stages run strictly one after another. Dataset problems surface before any
    feature extraction; a training failure stops the run before anything is
    saved.
    """
    context = PipelineContext(seed=config.seed)

    # 1. Load the labelled images
    loader = DatasetLoader(
        config.dataset.images_path,
        use_folder_name_as_label=config.dataset.use_folder_name_as_label,
        extensions=config.dataset.extensions,
    )
    records = loader.load_all()

    # 2. Encode labels over the full dataset
    encoder = LabelEncoder()
    encoder.fit(records)
    encoded = encoder.apply_all(records)

    # 3. Shuffle and split
    split = Splitter(context).split(encoded, test_fraction=config.dataset.test_fraction)

    # 4. Train, validating against the test split
    extractor = build_feature_extractor(config.feature_extractor)
    orchestrator = TrainingOrchestrator(
        context,
        config.training,
        extractor,
        encoder,
        observers=list(observers) if observers is not None else [LoggingObserver()],
    )
    pipeline = orchestrator.train(split.train_set, split.test_set)

    # 5. Evaluate on the held-out split
    metrics = Evaluator(top_k=config.evaluation_top_k).evaluate(pipeline, split.test_set)

    # 6. Persist
    model_path = ModelPersistence.save(pipeline, config.output_model_path)

    # 7. Try a single prediction
    sample_image = None
    sample_prediction = None
    if config.test_images_path:
        sample = PredictionService().try_single_prediction(
            pipeline, config.test_images_path, extensions=config.dataset.extensions
        )
        if sample is not None:
            sample_image, sample_prediction = sample

    return RunResult(
        pipeline=pipeline,
        metrics=metrics,
        model_path=model_path,
        train_size=len(split.train_set),
        test_size=len(split.test_set),
        sample_image=sample_image,
        sample_prediction=sample_prediction,
    )
