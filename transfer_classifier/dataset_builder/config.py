from typing import List

from pydantic import BaseModel, Field, field_validator

from transfer_classifier.lib.models import DEFAULT_IMAGE_EXTENSIONS

DEFAULT_TEST_FRACTION = 0.2


class DatasetConfig(BaseModel):
    """Configuration for loading and splitting the labelled image folder."""

    images_path: str = Field(
        ..., description="Root directory with one sub-directory per label"
    )
    use_folder_name_as_label: bool = Field(
        True, description="Derive each label from the image's parent folder name"
    )
    test_fraction: float = Field(
        DEFAULT_TEST_FRACTION,
        description="Fraction of the shuffled dataset held out for testing",
        gt=0,
        lt=1,
    )
    extensions: List[str] = Field(
        default_factory=lambda: list(DEFAULT_IMAGE_EXTENSIONS),
        description="Allow-list of image file extensions",
    )

    @field_validator("extensions")
    @classmethod
    def validate_extensions(cls, v: List[str]) -> List[str]:
        """Normalise extensions to lower case with a leading dot."""
        if not v:
            raise ValueError("extensions must not be empty")
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]
