import json
import time
from pathlib import Path
from typing import Dict, List, Protocol, Sequence, Union, cast

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.metrics import classification_report, confusion_matrix

from transfer_classifier.lib import (
    EvaluationError,
    EvaluationMetrics,
    LabeledKeyRecord,
    setup_logger,
)

logger = setup_logger(__name__)

# Floor applied to the true-class probability before taking the log
DEFAULT_EPSILON = 1e-15


class ScoringModel(Protocol):
    @property
    def labels(self) -> List[str]: ...

    def score_records(self, records: Sequence[LabeledKeyRecord]) -> np.ndarray: ...


class Evaluator:
    """Computes multiclass metrics for a trained model over a held-out set."""

    def __init__(self, top_k: int = 3, epsilon: float = DEFAULT_EPSILON):
        if top_k < 1:
            raise ValueError("top_k must be at least 1")
        if not 0 < epsilon < 1:
            raise ValueError("epsilon must be between 0 and 1")
        self.top_k = top_k
        self.epsilon = epsilon

    def evaluate(
        self, model: ScoringModel, test_set: Sequence[LabeledKeyRecord]
    ) -> EvaluationMetrics:
        if len(test_set) == 0:
            raise EvaluationError("Cannot compute metrics over an empty test set")

        labels = list(model.labels)
        num_classes = len(labels)

        logger.info(f"Evaluating on {len(test_set)} test images...")
        start = time.perf_counter()
        scores = np.asarray(model.score_records(test_set), dtype=np.float64)
        if scores.shape != (len(test_set), num_classes):
            raise EvaluationError(
                f"Expected scores of shape {(len(test_set), num_classes)}, got {scores.shape}"
            )

        y_true = np.array([record.label_key for record in test_set], dtype=np.int64)
        if y_true.min() < 0 or y_true.max() >= num_classes:
            raise EvaluationError("Test set contains label keys unknown to the model")
        y_pred = scores.argmax(axis=1)

        micro_accuracy = float(np.mean(y_pred == y_true))

        present = np.unique(y_true)
        recalls = [float(np.mean(y_pred[y_true == key] == key)) for key in present]
        macro_accuracy = float(np.mean(recalls))

        true_probabilities = scores[np.arange(len(y_true)), y_true]
        losses = -np.log(np.clip(true_probabilities, self.epsilon, 1.0))
        log_loss = float(np.mean(losses))

        # Log-loss of always predicting the test set's class frequencies
        frequencies = np.bincount(y_true, minlength=num_classes) / len(y_true)
        prior_log_loss = float(
            -np.sum(frequencies[present] * np.log(frequencies[present]))
        )
        log_loss_reduction = (
            1.0 - log_loss / prior_log_loss if prior_log_loss > 0 else 0.0
        )

        k = min(self.top_k, num_classes)
        top_k_predictions = np.argsort(-scores, axis=1, kind="stable")[:, :k]
        top_k_accuracy = float(np.mean(np.any(top_k_predictions == y_true[:, None], axis=1)))

        per_class_log_loss = {
            labels[key]: float(np.mean(losses[y_true == key])) for key in present
        }

        cm = confusion_matrix(y_true, y_pred, labels=list(range(num_classes)))
        cm_df = pd.DataFrame(cm, index=labels, columns=labels)
        confusion: Dict[str, Dict[str, int]] = {
            actual: {predicted: int(count) for predicted, count in row.items()}
            for actual, row in cm_df.to_dict(orient="index").items()
        }

        report = cast(
            Dict[str, object],
            classification_report(
                y_true,
                y_pred,
                labels=list(range(num_classes)),
                target_names=labels,
                output_dict=True,
                zero_division=0,
            ),
        )

        metrics = EvaluationMetrics(
            labels=labels,
            num_samples=len(test_set),
            micro_accuracy=micro_accuracy,
            macro_accuracy=macro_accuracy,
            log_loss=log_loss,
            log_loss_reduction=log_loss_reduction,
            top_k=k,
            top_k_accuracy=top_k_accuracy,
            per_class_log_loss=per_class_log_loss,
            confusion_matrix=confusion,
            classification_report=report,
        )

        logger.info("--- Test Set Evaluation ---")
        logger.info(f"Micro accuracy: {micro_accuracy:.4f}")
        logger.info(f"Macro accuracy: {macro_accuracy:.4f}")
        logger.info(f"Log loss: {log_loss:.4f}")
        logger.info(f"Log loss reduction: {log_loss_reduction:.4f}")
        logger.info(
            f"Prediction and evaluation took {time.perf_counter() - start:.1f} second(s)"
        )
        return metrics


def metrics_to_json(metrics: EvaluationMetrics) -> str:
    return json.dumps(metrics.model_dump(), indent=4, default=float)


def plot_confusion_matrix(metrics: EvaluationMetrics, path: Union[str, Path]) -> Path:
    """Save the confusion matrix as a heat-map image."""
    path = Path(path)
    cm_df = pd.DataFrame(
        metrics.confusion_counts(metrics.labels),
        index=metrics.labels,
        columns=metrics.labels,
    )
    plt.figure(figsize=(10, 7))
    sns.heatmap(cm_df, annot=True, fmt="d", cmap="Blues")
    plt.title("Confusion Matrix")
    plt.ylabel("Actual")
    plt.xlabel("Predicted")
    plt.savefig(path)
    plt.close()
    logger.info(f"Confusion matrix saved to {path}")
    return path
