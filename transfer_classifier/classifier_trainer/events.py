from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from transfer_classifier.lib import setup_logger

logger = setup_logger(__name__)


class TrainingEventKind(str, Enum):
    STARTED = "started"
    FEATURES_EXTRACTED = "features_extracted"
    EPOCH_END = "epoch_end"
    CHECKPOINT = "checkpoint"
    EARLY_STOP = "early_stop"
    FINISHED = "finished"
    FAILED = "failed"


class TrainingEvent(BaseModel):
    """A progress notification emitted at a training checkpoint."""

    model_config = ConfigDict(frozen=True)

    kind: TrainingEventKind
    epoch: Optional[int] = None
    total_epochs: Optional[int] = None
    subset: Optional[str] = None
    metrics: Dict[str, float] = Field(default_factory=dict)
    message: str = ""


class TrainingObserver(Protocol):
    def on_training_event(self, event: TrainingEvent) -> None: ...


class LoggingObserver:
    """Writes training events to the standard logger."""

    def on_training_event(self, event: TrainingEvent) -> None:
        if event.kind == TrainingEventKind.EPOCH_END:
            logger.info(
                f"Epoch {event.epoch + 1}/{event.total_epochs} {event.subset:<5} | "
                + ", ".join(f"{k}: {v:.4f}" for k, v in event.metrics.items())
            )
        elif event.kind == TrainingEventKind.FAILED:
            logger.error(event.message)
        elif event.message:
            logger.info(event.message)


class EventDispatcher:
    """
    Fans training events out to observers.

    Observers are advisory: an observer that raises is logged and skipped, it
    never interrupts training.
    """

    def __init__(self, observers: Optional[Iterable[TrainingObserver]] = None):
        self.observers: List[TrainingObserver] = list(observers or [])

    def emit(self, event: TrainingEvent) -> None:
        for observer in self.observers:
            try:
                observer.on_training_event(event)
            except Exception as e:
                logger.warning(
                    f"Observer {type(observer).__name__} failed on {event.kind.value}: {e}"
                )

    __call__ = emit
