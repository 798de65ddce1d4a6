import json

import typer

from transfer_classifier.classifier_trainer.persistence import ModelPersistence
from transfer_classifier.lib import InvalidInputError, PersistenceError, setup_logger

from .service import PredictionService

app = typer.Typer(help="Image Classifier Prediction Component")

logger = setup_logger(__name__)


@app.command()
def predict(
    model_path: str = typer.Argument(..., help="Path to the trained model artifact"),
    image_path: str = typer.Argument(..., help="Path to the image to classify"),
):
    """
    Classify a single image and print the prediction as JSON.
    """
    try:
        model = ModelPersistence.load(model_path)
    except PersistenceError as e:
        logger.critical(e, exc_info=True)
        raise typer.Exit(code=1)

    try:
        result = PredictionService().predict(model, image_path)
    except InvalidInputError as e:
        typer.echo(f"Error: {e}")
        raise typer.Exit(code=1)

    typer.echo(json.dumps(result.to_response(), indent=2))


if __name__ == "__main__":
    app()
