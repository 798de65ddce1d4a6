"""
Feature extractors: stage (a) of the transform, mapping decoded images to the
feature vectors the classifier head is trained on.
"""

from typing import Callable, Dict

from .base import FeatureExtractor, FeatureExtractorSpec
from .dino import DinoFeatureExtractor
from .histogram import ColorHistogramFeatureExtractor

FEATURE_EXTRACTORS: Dict[str, Callable[..., FeatureExtractor]] = {
    DinoFeatureExtractor.name: DinoFeatureExtractor,
    ColorHistogramFeatureExtractor.name: ColorHistogramFeatureExtractor,
}


def build_feature_extractor(spec: FeatureExtractorSpec) -> FeatureExtractor:
    """Instantiate a registered feature extractor from its spec."""
    try:
        factory = FEATURE_EXTRACTORS[spec.name]
    except KeyError:
        raise ValueError(
            f"Unknown feature extractor '{spec.name}', expected one of {sorted(FEATURE_EXTRACTORS)}"
        ) from None
    return factory(**spec.params)


__all__ = [
    "FeatureExtractor",
    "FeatureExtractorSpec",
    "DinoFeatureExtractor",
    "ColorHistogramFeatureExtractor",
    "FEATURE_EXTRACTORS",
    "build_feature_extractor",
]
