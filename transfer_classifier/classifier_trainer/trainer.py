import threading
from typing import Callable, Dict, Optional, Tuple

import torch
from pydantic import BaseModel, ConfigDict
from torch.utils.data import DataLoader
from tqdm import tqdm

from transfer_classifier.lib import PipelineContext, setup_logger

from .config import HeadType, TrainingConfig
from .dataset import FeatureDataset
from .events import TrainingEvent, TrainingEventKind
from .model import build_head

logger = setup_logger(__name__)

EventCallback = Callable[[TrainingEvent], None]


class TrainingCancelled(RuntimeError):
    """Raised inside the training loop when cancellation was requested."""


class HeadWeights(BaseModel):
    """Trained classifier head parameters and the checkpoint they came from."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    head_type: HeadType
    input_dim: int
    num_classes: int
    state_dict: Dict[str, torch.Tensor]
    best_epoch: int
    best_validation_loss: Optional[float] = None


class Trainer:
    """
    Trains a classifier head on pre-extracted features.

    The validation split only selects the checkpoint that is kept and decides
    when to stop early. It is not used for reported metrics.
    """

    def __init__(
        self,
        config: TrainingConfig,
        context: PipelineContext,
        num_classes: int,
        feature_dim: int,
        emit: Optional[EventCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        if num_classes <= 0:
            raise ValueError("num_classes must be greater than 0")
        if feature_dim <= 0:
            raise ValueError("Could not determine feature dimension from training data.")

        self.config = config
        self.context = context
        self.num_classes = num_classes
        self.feature_dim = feature_dim
        self.emit = emit or (lambda event: None)
        self.cancel_event = cancel_event or threading.Event()

        self.device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
        logger.info(f"Using device: {self.device}")

        hyperparameters = config.hyperparameters
        self.head_type = hyperparameters.head_type
        self.model = build_head(self.head_type, feature_dim, num_classes)
        self.model.to(self.device)

        self.criterion = torch.nn.CrossEntropyLoss()
        self.optimizer = torch.optim.AdamW(
            self.model.parameters(), lr=hyperparameters.learning_rate
        )

        self.best_val_metric = float("inf")  # Validation loss, lower is better
        self.best_epoch = -1
        self.best_state: Optional[Dict[str, torch.Tensor]] = None

    def _calculate_metrics(
        self, logits: torch.Tensor, labels: torch.Tensor
    ) -> Dict[str, float]:
        """Calculates loss and accuracy for a batch."""
        loss = self.criterion(logits, labels).item()
        preds = torch.argmax(logits, dim=1)
        accuracy = (preds == labels).float().mean().item()
        return {"loss": loss, "accuracy": accuracy}

    def _snapshot(self) -> Dict[str, torch.Tensor]:
        return {
            name: tensor.detach().cpu().clone()
            for name, tensor in self.model.state_dict().items()
        }

    def _run_epoch(
        self,
        loader: DataLoader[Tuple[torch.Tensor, torch.Tensor]],
        is_training: bool = True,
    ) -> Dict[str, float]:
        """Runs a single epoch of training or validation."""
        if is_training:
            self.model.train()
            context = torch.enable_grad()
        else:
            self.model.eval()
            context = torch.no_grad()

        total_loss = 0.0
        total_correct = 0.0
        total_samples = 0

        pbar = tqdm(loader, desc=f"{'Train' if is_training else 'Eval'}", leave=False)
        with context:
            for features, labels in pbar:
                if self.cancel_event.is_set():
                    raise TrainingCancelled("Training was cancelled")

                features, labels = features.to(self.device), labels.to(self.device)

                if is_training:
                    self.optimizer.zero_grad()

                logits = self.model(features)
                loss = self.criterion(logits, labels)

                if is_training:
                    loss.backward()
                    self.optimizer.step()

                batch_metrics = self._calculate_metrics(logits, labels)
                batch_size = labels.size(0)
                total_loss += batch_metrics["loss"] * batch_size
                total_correct += batch_metrics["accuracy"] * batch_size
                total_samples += batch_size

                pbar.set_postfix(
                    {
                        "loss": f"{batch_metrics['loss']:.4f}",
                        "acc": f"{batch_metrics['accuracy']:.4f}",
                    }
                )

        return {
            "loss": total_loss / total_samples,
            "accuracy": total_correct / total_samples,
        }

    def train(self, train_dataset: FeatureDataset, val_dataset: FeatureDataset) -> HeadWeights:
        """Runs the main training loop and returns the selected checkpoint."""
        if len(train_dataset) == 0:
            raise ValueError("Cannot train on an empty training set")
        if train_dataset.feature_dim != self.feature_dim:
            raise ValueError("Train feature dimension mismatch.")
        has_validation = len(val_dataset) > 0
        if has_validation and val_dataset.feature_dim != self.feature_dim:
            raise ValueError("Validation feature dimension mismatch.")
        if not has_validation:
            logger.warning(
                "Validation set is empty, keeping the weights of the final epoch."
            )

        batch_size = self.config.hyperparameters.batch_size
        train_loader = DataLoader(
            train_dataset,
            batch_size=batch_size,
            shuffle=True,
            generator=self.context.torch_generator(),
        )
        val_loader = DataLoader(val_dataset, batch_size=batch_size, shuffle=False)

        total_epochs = self.config.hyperparameters.num_epochs
        patience = self.config.hyperparameters.early_stopping_patience
        epochs_without_improvement = 0

        logger.info("Starting training...")
        for epoch in range(total_epochs):
            train_metrics = self._run_epoch(train_loader, is_training=True)
            self.emit(
                TrainingEvent(
                    kind=TrainingEventKind.EPOCH_END,
                    epoch=epoch,
                    total_epochs=total_epochs,
                    subset="train",
                    metrics=train_metrics,
                )
            )

            if not has_validation:
                continue

            val_metrics = self._run_epoch(val_loader, is_training=False)
            self.emit(
                TrainingEvent(
                    kind=TrainingEventKind.EPOCH_END,
                    epoch=epoch,
                    total_epochs=total_epochs,
                    subset="val",
                    metrics=val_metrics,
                )
            )

            current_val_metric = val_metrics["loss"]
            if current_val_metric < self.best_val_metric:
                self.best_val_metric = current_val_metric
                self.best_epoch = epoch
                self.best_state = self._snapshot()
                epochs_without_improvement = 0
                self.emit(
                    TrainingEvent(
                        kind=TrainingEventKind.CHECKPOINT,
                        epoch=epoch,
                        total_epochs=total_epochs,
                        metrics={"loss": current_val_metric},
                        message=f"New best validation loss ({current_val_metric:.4f}) at epoch {epoch + 1}",
                    )
                )
            else:
                epochs_without_improvement += 1

            if patience is not None and epochs_without_improvement >= patience:
                self.emit(
                    TrainingEvent(
                        kind=TrainingEventKind.EARLY_STOP,
                        epoch=epoch,
                        total_epochs=total_epochs,
                        message=f"No validation improvement for {patience} epochs, stopping at epoch {epoch + 1}",
                    )
                )
                break

        if self.best_state is None:
            self.best_epoch = epoch
            self.best_state = self._snapshot()

        logger.info("Training finished.")
        if has_validation:
            logger.info(
                f"Best validation loss ({self.best_val_metric:.4f}) achieved at epoch {self.best_epoch + 1}"
            )

        return HeadWeights(
            head_type=self.head_type,
            input_dim=self.feature_dim,
            num_classes=self.num_classes,
            state_dict=self.best_state,
            best_epoch=self.best_epoch,
            best_validation_loss=self.best_val_metric if has_validation else None,
        )


def fit_classifier(
    train_dataset: FeatureDataset,
    val_dataset: FeatureDataset,
    num_classes: int,
    config: TrainingConfig,
    context: PipelineContext,
    emit: Optional[EventCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> HeadWeights:
    """
    Train a classifier head and return its weights.

    Torch's global RNG is forked for the duration of the call so that head
    initialisation and dropout are driven by the run seed alone.
    """
    with torch.random.fork_rng(devices=[]):
        torch.manual_seed(context.seed)
        trainer = Trainer(
            config,
            context,
            num_classes=num_classes,
            feature_dim=train_dataset.feature_dim,
            emit=emit,
            cancel_event=cancel_event,
        )
        return trainer.train(train_dataset, val_dataset)
