import torch
from torch.utils.data import Dataset as TorchDataset
from typing import List, Tuple


class FeatureDataset(TorchDataset[Tuple[torch.Tensor, torch.Tensor]]):
    """PyTorch Dataset for pre-extracted features and label keys."""

    def __init__(self, features: List[torch.Tensor], label_keys: List[int]):
        if len(features) != len(label_keys):
            raise ValueError(
                f"Got {len(features)} feature vectors for {len(label_keys)} labels"
            )
        if features:
            self._feature_dim = int(features[0].numel())
            assert all(
                int(f.numel()) == self._feature_dim for f in features
            ), "Inconsistent feature dimensions found in dataset split."
            self.features = torch.stack(
                [f.detach().reshape(-1).to(torch.float32) for f in features]
            )
        else:
            self._feature_dim = 0
            self.features = torch.empty((0, 0), dtype=torch.float32)
        # CrossEntropyLoss expects long
        self.labels = torch.tensor(label_keys, dtype=torch.long)

    def __len__(self) -> int:
        return len(self.labels)

    def __getitem__(self, idx: int) -> Tuple[torch.Tensor, torch.Tensor]:
        return self.features[idx], self.labels[idx]

    @property
    def feature_dim(self) -> int:
        return self._feature_dim
