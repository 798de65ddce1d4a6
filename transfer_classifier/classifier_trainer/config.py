import json
from enum import Enum
from pathlib import Path
import re
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from transfer_classifier.dataset_builder.config import DatasetConfig
from transfer_classifier.feature_extractor import FeatureExtractorSpec


class Task(str, Enum):
    """The intended task of the model."""

    IMAGE_CLASSIFICATION = "image_classification"


class HeadType(str, Enum):
    """Architecture of the trainable classifier head."""

    SIMPLE = "simple"  # A single linear layer
    COMPLEX = "complex"  # Linear -> ReLU -> Dropout -> Linear


DEFAULT_LEARNING_RATE = 0.0001
DEFAULT_BATCH_SIZE = 128
DEFAULT_NUM_EPOCHS = 10
DEFAULT_EARLY_STOPPING_PATIENCE = 5
DEFAULT_TOP_K = 3


class ModelInformation(BaseModel):
    """Information about the model to train."""

    name: str = Field("image_classifier", description="Name of the model")
    description: str = Field("", description="Description of the model")
    version: str = Field("0.1.0", description="Version of the model")
    task: Task = Field(
        Task.IMAGE_CLASSIFICATION, description="The intended task of the model"
    )

    @field_validator("version")
    def validate_version(cls, v: str) -> str:
        """Validate the version of the model."""
        if not re.match(r"^\d+\.\d+\.\d+$", v):
            raise ValueError("Version must be in the semver format x.x.x")
        return v


class Hyperparameters(BaseModel):
    """Hyperparameters for the training process."""

    learning_rate: float = Field(
        DEFAULT_LEARNING_RATE,
        description="Learning rate for the model",
        ge=0,
    )
    batch_size: int = Field(
        DEFAULT_BATCH_SIZE, description="Batch size for training", ge=1
    )
    num_epochs: int = Field(
        DEFAULT_NUM_EPOCHS, description="Number of epochs to train", ge=1
    )
    early_stopping_patience: Optional[int] = Field(
        DEFAULT_EARLY_STOPPING_PATIENCE,
        description="Epochs without validation improvement before stopping. None disables early stopping",
        ge=1,
    )
    head_type: HeadType = Field(
        HeadType.SIMPLE, description="Architecture of the classifier head"
    )


class OrchestrationConfig(BaseModel):
    """How records are wired into the trainer."""

    feature_column: str = Field(
        "image_path", description="Record field holding the image location"
    )
    label_column: str = Field(
        "label_key", description="Record field holding the integer label key"
    )
    timeout_seconds: Optional[float] = Field(
        None, description="Abort training after this many seconds", gt=0
    )


class TrainingConfig(BaseModel):
    """Configuration for training a classifier."""

    model_config = ConfigDict(protected_namespaces=())

    model_information: ModelInformation = Field(
        default_factory=ModelInformation,
        description="Information about the model to train",
    )
    hyperparameters: Hyperparameters = Field(
        default_factory=Hyperparameters,
        description="Hyperparameters for the training process",
    )
    orchestration: OrchestrationConfig = Field(
        default_factory=OrchestrationConfig,
        description="Column wiring and time limits",
    )


class RunConfig(BaseModel):
    """Configuration for a full load, train, evaluate, save and predict run."""

    seed: int = Field(1, description="Random seed for reproducibility", ge=0)
    dataset: DatasetConfig = Field(..., description="Where and how to load images")
    feature_extractor: FeatureExtractorSpec = Field(
        default_factory=FeatureExtractorSpec,
        description="Pretrained feature extractor",
    )
    training: TrainingConfig = Field(
        default_factory=TrainingConfig, description="Training configuration"
    )
    output_model_path: str = Field(
        ..., description="Where to write the trained model artifact"
    )
    test_images_path: Optional[str] = Field(
        None, description="Folder of loose images to try a single prediction on"
    )
    evaluation_top_k: int = Field(
        DEFAULT_TOP_K, description="k for top-k accuracy", ge=1
    )


def load_config(config_file: Union[str, Path]) -> RunConfig:
    """Load and validate a run configuration from a YAML or JSON file."""
    config_path = Path(config_file)
    if config_path.suffix.lower() in [".yaml", ".yml"]:
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f)
    elif config_path.suffix.lower() == ".json":
        with open(config_path, "r") as f:
            config_data = json.load(f)
    else:
        raise ValueError(f"Unsupported config file format: {config_path.suffix}")

    return RunConfig.model_validate(config_data)
