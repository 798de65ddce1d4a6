from typing import Any, Dict, Protocol

import torch
from PIL import Image
from pydantic import BaseModel, Field


class FeatureExtractorSpec(BaseModel):
    """Serialisable description of a feature extractor."""

    name: str = Field("dinov2", description="Registered name of the extractor")
    params: Dict[str, Any] = Field(
        default_factory=dict, description="Constructor arguments"
    )


class FeatureExtractor(Protocol):
    """Maps a decoded image to a fixed-length feature vector."""

    @property
    def spec(self) -> FeatureExtractorSpec: ...

    @property
    def feature_dim(self) -> int: ...

    def extract_features(self, image: Image.Image) -> torch.Tensor: ...
