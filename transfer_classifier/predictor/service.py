import time
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

import numpy as np

from transfer_classifier.classifier_trainer.pipeline import TrainedPipeline
from transfer_classifier.dataset_builder.loader import DatasetLoader
from transfer_classifier.lib import (
    InvalidInputError,
    NotFoundError,
    PredictionResult,
    setup_logger,
)
from transfer_classifier.lib.images import decode_image, read_image_bytes

logger = setup_logger(__name__)


class PredictionService:
    """
    Single-image inference against a loaded pipeline.

    The pipeline is only read, so one service and one model can serve
    concurrent requests. A bad input fails that call alone.
    """

    def predict(self, model: TrainedPipeline, image_path: Union[str, Path]) -> PredictionResult:
        try:
            data = read_image_bytes(image_path)
        except NotFoundError as e:
            raise InvalidInputError(str(e)) from e
        return self.predict_bytes(model, data)

    def predict_bytes(self, model: TrainedPipeline, data: bytes) -> PredictionResult:
        """
        Predict from in-memory image bytes.

        The reported latency covers decoding, feature extraction and the
        classifier head, not reading the file.
        """
        start = time.perf_counter()
        image = decode_image(data)
        try:
            features = model.extractor.extract_features(image)
        except Exception as e:
            raise InvalidInputError(f"Could not extract features from the image ({e})") from e
        scores = model.score_features(features.reshape(1, -1))[0]
        elapsed_ms = int((time.perf_counter() - start) * 1000)

        predicted_label = model.decode(int(np.argmax(scores)))
        logger.debug(f"Predicted '{predicted_label}' in {elapsed_ms} ms")
        return PredictionResult(
            predicted_label=predicted_label,
            score_per_class=[float(score) for score in scores],
            elapsed_milliseconds=elapsed_ms,
        )

    def try_single_prediction(
        self,
        model: TrainedPipeline,
        images_folder: Union[str, Path],
        extensions: Optional[Iterable[str]] = None,
    ) -> Optional[Tuple[str, PredictionResult]]:
        """Predict the first image found in a folder of loose test images."""
        loader = DatasetLoader(
            images_folder, use_folder_name_as_label=False, extensions=extensions
        )
        image = next(iter(loader.load()), None)
        if image is None:
            logger.warning(f"No test images found in {images_folder}")
            return None

        prediction = self.predict(model, image.image_path)
        logger.info(
            f"Image: [{Path(image.image_path).name}], "
            f"Scores: [{','.join(str(s) for s in prediction.score_per_class)}], "
            f"Predicted label: {prediction.predicted_label}"
        )
        return image.image_path, prediction
