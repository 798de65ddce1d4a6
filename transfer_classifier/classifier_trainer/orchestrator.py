import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Iterable, List, Optional, Sequence

import torch
from tqdm import tqdm

from transfer_classifier.dataset_builder.encoder import LabelEncoder
from transfer_classifier.feature_extractor import FeatureExtractor
from transfer_classifier.lib import (
    LabeledKeyRecord,
    PipelineContext,
    TrainingFailure,
    setup_logger,
)
from transfer_classifier.lib.images import decode_image, read_image_bytes

from .config import TrainingConfig
from .dataset import FeatureDataset
from .events import EventDispatcher, TrainingEvent, TrainingEventKind, TrainingObserver
from .model import build_head
from .pipeline import PipelineMetadata, TrainedPipeline
from .trainer import HeadWeights, TrainingCancelled, fit_classifier

logger = setup_logger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _remaining_seconds(deadline: Optional[float], timeout: Optional[float]) -> Optional[float]:
    """Seconds left before ``deadline``; raises ``TimeoutError`` once it has passed."""
    if deadline is None:
        return None
    remaining = deadline - time.perf_counter()
    if remaining <= 0:
        raise TimeoutError(f"Training exceeded {timeout} seconds")
    return remaining


class TrainingOrchestrator:
    """
    Wires encoded records through feature extraction and the trainer.

    Builds the two-stage transform (image bytes to features, then the
    classifier head) and appends the key-to-label decode stage. Nothing is
    written to disk here, so a failed run never leaves a partial model behind.
    """

    def __init__(
        self,
        context: PipelineContext,
        config: TrainingConfig,
        extractor: FeatureExtractor,
        encoder: LabelEncoder,
        observers: Optional[Iterable[TrainingObserver]] = None,
    ):
        if not encoder.is_fitted:
            raise ValueError("The label encoder must be fitted before training")
        self.context = context
        self.config = config
        self.extractor = extractor
        self.encoder = encoder
        self.dispatcher = EventDispatcher(observers)
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Ask a running ``train`` call to stop at the next batch boundary."""
        self._cancel_event.set()

    def extract_features(
        self,
        records: Sequence[LabeledKeyRecord],
        desc: str = "Extracting features",
        deadline: Optional[float] = None,
    ) -> FeatureDataset:
        """
        Stage (a): raw image bytes to feature vectors.

        ``deadline`` is a ``time.perf_counter`` value checked before each image.
        """
        timeout = self.config.orchestration.timeout_seconds
        feature_column = self.config.orchestration.feature_column
        label_column = self.config.orchestration.label_column

        features: List[torch.Tensor] = []
        label_keys: List[int] = []
        for record in tqdm(records, desc=desc, leave=False):
            if self._cancel_event.is_set():
                raise TrainingCancelled("Training was cancelled")
            _remaining_seconds(deadline, timeout)
            image = decode_image(read_image_bytes(getattr(record, feature_column)))
            features.append(self.extractor.extract_features(image))
            label_keys.append(int(getattr(record, label_column)))
        return FeatureDataset(features, label_keys)

    def _fit(
        self,
        train_dataset: FeatureDataset,
        val_dataset: FeatureDataset,
        deadline: Optional[float] = None,
    ) -> HeadWeights:
        """Stage (b): run the trainer in a worker thread with what is left of the time limit."""
        timeout = self.config.orchestration.timeout_seconds
        remaining = _remaining_seconds(deadline, timeout)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="trainer")
        try:
            future = executor.submit(
                fit_classifier,
                train_dataset,
                val_dataset,
                num_classes=len(self.encoder.labels),
                config=self.config,
                context=self.context,
                emit=self.dispatcher.emit,
                cancel_event=self._cancel_event,
            )
            try:
                return future.result(timeout=remaining)
            except FuturesTimeoutError:
                self._cancel_event.set()
                raise TimeoutError(f"Training exceeded {timeout} seconds") from None
        finally:
            executor.shutdown(wait=True)

    def train(
        self,
        train_set: Sequence[LabeledKeyRecord],
        validation_set: Sequence[LabeledKeyRecord],
    ) -> TrainedPipeline:
        """
        Train a pipeline on ``train_set``.

        ``validation_set`` only guides checkpoint selection and early stopping.
        Any failure is raised as ``TrainingFailure`` with the elapsed time.
        """
        self._cancel_event.clear()
        start = time.perf_counter()
        timeout = self.config.orchestration.timeout_seconds
        # One time limit covers feature extraction and fitting
        deadline = start + timeout if timeout is not None else None
        self.dispatcher.emit(
            TrainingEvent(
                kind=TrainingEventKind.STARTED,
                message=f"Training on {len(train_set)} images, validating on {len(validation_set)}",
            )
        )

        try:
            train_dataset = self.extract_features(
                train_set, desc="Train features", deadline=deadline
            )
            val_dataset = self.extract_features(
                validation_set, desc="Validation features", deadline=deadline
            )
            self.dispatcher.emit(
                TrainingEvent(
                    kind=TrainingEventKind.FEATURES_EXTRACTED,
                    message=f"Extracted {train_dataset.feature_dim}-dimensional features in {_elapsed_ms(start)} ms",
                )
            )

            weights = self._fit(train_dataset, val_dataset, deadline)

            head = build_head(weights.head_type, weights.input_dim, weights.num_classes)
            head.load_state_dict(weights.state_dict)
        except Exception as e:
            elapsed_ms = _elapsed_ms(start)
            self.dispatcher.emit(
                TrainingEvent(
                    kind=TrainingEventKind.FAILED,
                    message=f"Training failed after {elapsed_ms} ms: {e}",
                )
            )
            raise TrainingFailure(f"Training failed: {e}", elapsed_ms=elapsed_ms) from e

        info = self.config.model_information
        pipeline = TrainedPipeline(
            labels=self.encoder.labels,
            extractor=self.extractor,
            head=head,
            head_type=weights.head_type,
            metadata=PipelineMetadata(
                model_name=info.name,
                model_version=info.version,
                seed=self.context.seed,
                best_epoch=weights.best_epoch,
                best_validation_loss=weights.best_validation_loss,
            ),
        )

        elapsed_ms = _elapsed_ms(start)
        self.dispatcher.emit(
            TrainingEvent(
                kind=TrainingEventKind.FINISHED,
                metrics={"elapsed_ms": float(elapsed_ms)},
                message=f"Training took {elapsed_ms / 1000:.1f} second(s)",
            )
        )
        return pipeline
