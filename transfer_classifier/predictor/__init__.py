"""Single-image prediction against a saved model."""

from .service import PredictionService

__all__ = ["PredictionService"]
