from enum import Enum
from typing import Dict, List, Sequence

from pydantic import BaseModel, ConfigDict, Field


class ImageFormat(str, Enum):
    """File extensions accepted as training or prediction images."""

    PNG = ".png"
    JPG = ".jpg"
    JPEG = ".jpeg"
    GIF = ".gif"
    BMP = ".bmp"
    WEBP = ".webp"


DEFAULT_IMAGE_EXTENSIONS: List[str] = [fmt.value for fmt in ImageFormat]


class ImageRecord(BaseModel):
    """Represents a single image with its derived label."""

    model_config = ConfigDict(frozen=True)

    image_path: str
    label: str


class LabeledKeyRecord(ImageRecord):
    """An image record with the integer key assigned to its label."""

    label_key: int = Field(..., ge=0)


class SplitResult(BaseModel):
    """Disjoint train and test subsets of a dataset."""

    model_config = ConfigDict(frozen=True)

    train_set: List[LabeledKeyRecord]
    test_set: List[LabeledKeyRecord]


class PredictionResult(BaseModel):
    """Outcome of a single inference call."""

    model_config = ConfigDict(frozen=True)

    predicted_label: str
    # Ordered by label key, i.e. the order of the model's label mapping
    score_per_class: List[float]
    elapsed_milliseconds: int = Field(..., ge=0)

    def to_response(self) -> Dict[str, object]:
        """The payload handed to the web front end."""
        return {
            "predictedLabel": self.predicted_label,
            "score": list(self.score_per_class),
            "executionTimeMs": self.elapsed_milliseconds,
            "probability": max(self.score_per_class),
        }


class EvaluationMetrics(BaseModel):
    """Multiclass statistics computed once over a full test set."""

    model_config = ConfigDict(frozen=True)

    labels: List[str]
    num_samples: int
    micro_accuracy: float
    macro_accuracy: float
    log_loss: float
    log_loss_reduction: float
    top_k: int
    top_k_accuracy: float
    per_class_log_loss: Dict[str, float]
    # true label -> predicted label -> count
    confusion_matrix: Dict[str, Dict[str, int]]
    classification_report: Dict[str, object]

    def confusion_counts(self, labels: Sequence[str]) -> List[List[int]]:
        return [
            [self.confusion_matrix[actual][predicted] for predicted in labels]
            for actual in labels
        ]
