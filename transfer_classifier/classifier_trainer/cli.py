from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError

from transfer_classifier.lib import setup_logger

from .config import load_config
from .evaluator import metrics_to_json, plot_confusion_matrix
from .events import LoggingObserver, TrainingObserver
from .runner import run_pipeline

app = typer.Typer(help="Image Classifier Training Component")

logger = setup_logger(__name__)


@app.command()
def run(
    config_file: str = typer.Argument(
        ..., help="Path to the run configuration file (YAML/JSON)"
    ),
    track: bool = typer.Option(False, help="Track the run with Aim"),
    aim_repo: Optional[str] = typer.Option(None, help="Aim repository path"),
):
    """
    Train, evaluate and save an image classifier, then try one prediction.
    """
    try:
        try:
            config = load_config(config_file)
        except ValidationError as e:
            logger.critical(e, exc_info=True)
            raise typer.Exit(code=1)

        observers: List[TrainingObserver] = [LoggingObserver()]
        aim_observer = None
        if track:
            from .tracking import AimObserver

            aim_observer = AimObserver(config, repo=aim_repo)
            observers.append(aim_observer)

        typer.echo("Training model...")
        result = run_pipeline(config, observers=observers)

        logger.info("Test results:")
        logger.info(metrics_to_json(result.metrics))
        if aim_observer is not None:
            aim_observer.track_evaluation(result.metrics)

        try:
            plot_confusion_matrix(
                result.metrics,
                Path(result.model_path).with_name("confusion_matrix.png"),
            )
        except Exception as e:
            logger.error(f"Could not generate or save confusion matrix plot: {e}")

        typer.echo(f"Model saved to {result.model_path}")
        typer.echo(f"  - Train set: {result.train_size} images")
        typer.echo(f"  - Test set: {result.test_size} images")
        if result.sample_prediction is not None:
            prediction = result.sample_prediction
            typer.echo(
                f"Image: [{Path(result.sample_image).name}], "
                f"Scores: [{','.join(f'{s:.4f}' for s in prediction.score_per_class)}], "
                f"Predicted label: {prediction.predicted_label}"
            )
    except typer.Exit:
        raise
    except Exception as e:
        logger.critical(e, exc_info=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
