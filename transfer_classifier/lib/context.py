import numpy as np
import torch
from pydantic import BaseModel, ConfigDict, Field


class PipelineContext(BaseModel):
    """
    Shared settings for one pipeline run.

    Passed explicitly to every stage that needs randomness. The seed is part of
    the run's reproducibility contract and is recorded in the saved artifact.
    """

    model_config = ConfigDict(frozen=True)

    seed: int = Field(1, description="Random seed for reproducibility", ge=0)

    def numpy_rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)

    def torch_generator(self) -> torch.Generator:
        generator = torch.Generator()
        generator.manual_seed(self.seed)
        return generator
