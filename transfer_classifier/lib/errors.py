from typing import Optional


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""


class NotFoundError(PipelineError, FileNotFoundError):
    """A required file or directory does not exist."""


class EncodingError(PipelineError):
    """A label (or key) is outside the fitted label mapping."""


class InvalidSplitError(PipelineError, ValueError):
    """The split preconditions are not met."""


class TrainingFailure(PipelineError):
    """The classifier could not be trained. No model is produced."""

    def __init__(self, message: str, elapsed_ms: int = 0):
        super().__init__(f"{message} (after {elapsed_ms} ms)")
        self.elapsed_ms = elapsed_ms


class EvaluationError(PipelineError):
    """Metrics could not be computed over the test set."""


class PersistenceError(PipelineError):
    """A model artifact could not be written or read back."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(f"{message}: {path}" if path else message)
        self.path = path


class InvalidInputError(PipelineError):
    """A prediction input could not be read or decoded as an image."""
