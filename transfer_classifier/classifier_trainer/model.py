import torch
import torch.nn as nn

from transfer_classifier.lib import setup_logger

from .config import HeadType

logger = setup_logger(__name__)


class SimpleClassifierHead(nn.Module):
    """Simple Linear Classifier Head."""

    def __init__(self, input_dim: int, num_classes: int = 0):
        super().__init__()
        if num_classes <= 0:
            raise ValueError("num_classes must be greater than 0")
        self.fc = nn.Linear(input_dim, num_classes)
        logger.info(
            f"SimpleClassifierHead initialized with {input_dim} input dimensions and {num_classes} classes"
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.fc(x)


class ComplexClassifierHead(nn.Module):
    """Complex Classifier Head."""

    def __init__(self, input_dim: int, num_classes: int = 0, hidden_dim: int = 256):
        super().__init__()
        if num_classes <= 0:
            raise ValueError("num_classes must be greater than 0")
        self.fc = nn.Sequential(
            nn.Linear(input_dim, hidden_dim),
            nn.ReLU(),
            nn.Dropout(0.5),
            nn.Linear(hidden_dim, num_classes),
        )

        logger.info(
            f"ComplexClassifierHead initialized with {input_dim} input dimensions and {num_classes} classes"
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.fc(x)


def build_head(head_type: HeadType, input_dim: int, num_classes: int) -> nn.Module:
    if head_type == HeadType.COMPLEX:
        return ComplexClassifierHead(input_dim=input_dim, num_classes=num_classes)
    return SimpleClassifierHead(input_dim=input_dim, num_classes=num_classes)
