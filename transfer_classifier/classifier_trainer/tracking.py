import json
from typing import Optional

import aim

from transfer_classifier.lib import EvaluationMetrics, setup_logger

from .config import RunConfig
from .events import TrainingEvent, TrainingEventKind

logger = setup_logger(__name__)


class AimObserver:
    """Tracks training progress in an Aim run."""

    def __init__(self, config: RunConfig, repo: Optional[str] = None):
        info = config.training.model_information
        self.experiment = f"{info.name}_v{info.version}"
        self.config = config
        self.repo = repo
        self.run: Optional[aim.Run] = None

    def _start(self) -> aim.Run:
        run = aim.Run(repo=self.repo, experiment=self.experiment)
        # Aim does not take pydantic models directly
        run["hparams"] = json.loads(self.config.model_dump_json())
        logger.info(f"Aim run initialized. Check UI or logs at: {run.repo.path}")
        return run

    def on_training_event(self, event: TrainingEvent) -> None:
        if event.kind == TrainingEventKind.STARTED:
            self.run = self._start()
            return
        if self.run is None:
            return

        if event.kind == TrainingEventKind.EPOCH_END:
            for name, value in event.metrics.items():
                self.run.track(
                    value,
                    name=f"epoch_{name}",
                    epoch=event.epoch,
                    context={"subset": event.subset},
                )
        elif event.kind == TrainingEventKind.CHECKPOINT:
            self.run["best_epoch"] = event.epoch
        elif event.kind in (TrainingEventKind.FINISHED, TrainingEventKind.FAILED):
            self.run["status"] = event.kind.value
            self.run.close()
            self.run = None

    def track_evaluation(self, metrics: EvaluationMetrics) -> None:
        """Log test-set metrics to a separate evaluation run."""
        eval_run = aim.Run(repo=self.repo, experiment=f"{self.experiment}_EVAL")
        eval_run["hparams"] = json.loads(self.config.model_dump_json())
        eval_run.track(metrics.log_loss, name="test_log_loss")
        eval_run.track(metrics.micro_accuracy, name="test_micro_accuracy")
        eval_run.track(metrics.macro_accuracy, name="test_macro_accuracy")
        eval_run.close()
