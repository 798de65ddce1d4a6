import numpy as np
import torch
from PIL import Image

from .base import FeatureExtractorSpec


class ColorHistogramFeatureExtractor:
    """
    Per-channel colour histograms plus channel means.

    A cheap, deterministic extractor that needs no pretrained weights. Useful
    for smoke runs on a CPU and for tests.
    """

    name = "color_histogram"

    def __init__(self, bins: int = 8, size: int = 32):
        if bins <= 0:
            raise ValueError("bins must be greater than 0")
        if size <= 0:
            raise ValueError("size must be greater than 0")
        self.bins = bins
        self.size = size

    @property
    def spec(self) -> FeatureExtractorSpec:
        return FeatureExtractorSpec(
            name=self.name, params={"bins": self.bins, "size": self.size}
        )

    @property
    def feature_dim(self) -> int:
        return 3 * self.bins + 3

    def extract_features(self, image: Image.Image) -> torch.Tensor:
        resized = image.convert("RGB").resize((self.size, self.size))
        pixels = np.asarray(resized, dtype=np.float32) / 255.0

        histograms = []
        for channel in range(3):
            counts, _ = np.histogram(pixels[..., channel], bins=self.bins, range=(0.0, 1.0))
            histograms.append(counts / counts.sum())
        means = pixels.reshape(-1, 3).mean(axis=0)

        features = np.concatenate(histograms + [means]).astype(np.float32)
        return torch.from_numpy(features)
