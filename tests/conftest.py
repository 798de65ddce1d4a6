# tests/conftest.py
"""
Global pytest fixtures for transfer_classifier tests.

Images are small synthetic PNGs: reddish for ``cat``, bluish for ``dog``, so
the colour histogram extractor separates them without pretrained weights.
"""

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from transfer_classifier.classifier_trainer import TrainingOrchestrator
from transfer_classifier.classifier_trainer.config import (
    Hyperparameters,
    TrainingConfig,
)
from transfer_classifier.dataset_builder import DatasetLoader, LabelEncoder, Splitter
from transfer_classifier.feature_extractor import ColorHistogramFeatureExtractor
from transfer_classifier.lib import PipelineContext

CAT_COLOR = (200, 40, 40)
DOG_COLOR = (40, 40, 200)


def write_image(path: Path, color, seed: int, size: int = 16) -> Path:
    """Write a noisy solid-colour PNG."""
    rng = np.random.default_rng(seed)
    noise = rng.integers(-20, 21, size=(size, size, 3))
    pixels = np.clip(np.array(color) + noise, 0, 255).astype(np.uint8)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(pixels).save(path)
    return path


@pytest.fixture
def image_dataset(tmp_path) -> Path:
    """A ``cat/`` folder with 6 images and a ``dog/`` folder with 4."""
    root = tmp_path / "images"
    for i in range(6):
        write_image(root / "cat" / f"cat{i:02d}.png", CAT_COLOR, seed=i)
    for i in range(4):
        write_image(root / "dog" / f"dog{i:02d}.png", DOG_COLOR, seed=100 + i)
    return root


@pytest.fixture
def test_images(tmp_path) -> Path:
    """Loose prediction images whose labels come from their file names."""
    folder = tmp_path / "test-images"
    write_image(folder / "cat01.png", CAT_COLOR, seed=1000)
    write_image(folder / "dog01.png", DOG_COLOR, seed=1001)
    return folder


@pytest.fixture
def context() -> PipelineContext:
    return PipelineContext(seed=1)


@pytest.fixture
def extractor() -> ColorHistogramFeatureExtractor:
    return ColorHistogramFeatureExtractor(bins=8, size=16)


@pytest.fixture
def training_config() -> TrainingConfig:
    return TrainingConfig(
        hyperparameters=Hyperparameters(
            learning_rate=0.1,
            batch_size=4,
            num_epochs=30,
            early_stopping_patience=None,
        )
    )


@pytest.fixture
def encoded_split(image_dataset, context):
    """Encoder plus the seed-1, 20% split of the cat/dog dataset."""
    records = DatasetLoader(image_dataset).load_all()
    encoder = LabelEncoder()
    encoder.fit(records)
    split = Splitter(context).split(encoder.apply_all(records), test_fraction=0.2)
    return encoder, split


@pytest.fixture
def trained_pipeline(encoded_split, context, training_config, extractor):
    encoder, split = encoded_split
    orchestrator = TrainingOrchestrator(context, training_config, extractor, encoder)
    return orchestrator.train(split.train_set, split.test_set)
