from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import torch
import torch.nn as nn
from PIL import Image
from pydantic import BaseModel, ConfigDict, Field
from tqdm import tqdm

from transfer_classifier.dataset_builder.encoder import LabelEncoder
from transfer_classifier.feature_extractor import FeatureExtractor
from transfer_classifier.lib import LabeledKeyRecord
from transfer_classifier.lib.images import load_image

from .config import HeadType


class PipelineMetadata(BaseModel):
    """Provenance recorded alongside a trained pipeline."""

    model_config = ConfigDict(protected_namespaces=())

    model_name: str = "image_classifier"
    model_version: str = "0.1.0"
    seed: Optional[int] = None
    best_epoch: Optional[int] = None
    best_validation_loss: Optional[float] = None
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class TrainedPipeline:
    """
    A trained image classifier: feature extractor, classifier head and the
    key-to-label decode stage.

    Treat instances as read-only once built. The head is kept in eval mode with
    gradients disabled, so concurrent callers can share one instance.
    """

    def __init__(
        self,
        labels: Sequence[str],
        extractor: FeatureExtractor,
        head: nn.Module,
        head_type: HeadType,
        metadata: Optional[PipelineMetadata] = None,
    ):
        self.encoder = LabelEncoder.from_mapping(
            {label: key for key, label in enumerate(labels)}
        )
        self.extractor = extractor
        self.head = head.cpu().eval()
        for parameter in self.head.parameters():
            parameter.requires_grad_(False)
        self.head_type = head_type
        self.metadata = metadata or PipelineMetadata()

    @property
    def labels(self) -> List[str]:
        """Labels ordered by key; the order of every score vector."""
        return self.encoder.labels

    @property
    def label_mapping(self) -> Dict[str, int]:
        return self.encoder.mapping

    @property
    def num_classes(self) -> int:
        return len(self.labels)

    @property
    def feature_dim(self) -> int:
        return self.extractor.feature_dim

    def decode(self, key: int) -> str:
        return self.encoder.decode(key)

    def score_features(self, features: torch.Tensor) -> np.ndarray:
        """Class probabilities for a ``(n, feature_dim)`` batch."""
        with torch.no_grad():
            logits = self.head(features.to(torch.float32).cpu())
            probabilities = torch.softmax(logits, dim=1)
        return probabilities.numpy().astype(np.float64)

    def score_image(self, image: Image.Image) -> np.ndarray:
        features = self.extractor.extract_features(image)
        return self.score_features(features.reshape(1, -1))[0]

    def predict_image(self, image: Image.Image) -> Tuple[str, np.ndarray]:
        scores = self.score_image(image)
        return self.decode(int(np.argmax(scores))), scores

    def score_records(self, records: Sequence[LabeledKeyRecord]) -> np.ndarray:
        """Score every record once, returning an ``(n, num_classes)`` array."""
        rows = [
            self.score_image(load_image(record.image_path))
            for record in tqdm(records, desc="Scoring", leave=False)
        ]
        if not rows:
            return np.empty((0, self.num_classes), dtype=np.float64)
        return np.stack(rows)
