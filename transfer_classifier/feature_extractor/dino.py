import logging

import torch
from PIL import Image
from transformers import AutoImageProcessor, AutoModel

from transfer_classifier.lib import setup_logger

from .base import FeatureExtractorSpec

logger = setup_logger(__name__, level=logging.INFO)

DEFAULT_DINO_MODEL = "facebook/dinov2-base"


class DinoFeatureExtractor:
    """Extracts features from images using a frozen DINO model."""

    name = "dinov2"

    def __init__(self, model_name: str = DEFAULT_DINO_MODEL):
        self.model_name = model_name
        self.processor = AutoImageProcessor.from_pretrained(model_name)
        self.model = AutoModel.from_pretrained(model_name)
        self.model.eval()
        logger.info(f"Loaded DINO backbone {model_name}")

    @property
    def spec(self) -> FeatureExtractorSpec:
        return FeatureExtractorSpec(
            name=self.name, params={"model_name": self.model_name}
        )

    @property
    def feature_dim(self) -> int:
        return int(self.model.config.hidden_size)

    def _normalise_image(self, image: Image.Image):
        """
        Normalises the image as expected by the DINO model.

        Remarks:
        AutoImageProcessor already handles normalisation, so we don't need to do anything here.
        """
        return self.processor(images=image, return_tensors="pt", do_resize=True)

    def extract_features(self, image: Image.Image) -> torch.Tensor:
        """
        Takes an image and returns the mean-pooled DINO features as a 1-D tensor.
        """
        inputs = self._normalise_image(image)
        with torch.no_grad():
            outputs = self.model(**inputs)
        features: torch.Tensor = outputs.last_hidden_state
        logger.debug(f"Features shape: {features.shape}")

        averaged_features: torch.Tensor = features.mean(dim=1).squeeze(0)
        logger.debug(f"Averaged feature shape: {averaged_features.shape}")

        assert isinstance(averaged_features, torch.Tensor)
        return averaged_features
