import math
from typing import Optional, Sequence

from transfer_classifier.lib import (
    InvalidSplitError,
    LabeledKeyRecord,
    PipelineContext,
    SplitResult,
    setup_logger,
)

logger = setup_logger(__name__)


def held_out_count(test_fraction: float, total: int) -> int:
    """Number of test records, rounding exact halves up."""
    return int(math.floor(test_fraction * total + 0.5))


class Splitter:
    """Partitions a dataset into disjoint train and test subsets."""

    def __init__(self, context: PipelineContext):
        self.context = context

    def split(
        self,
        dataset: Sequence[LabeledKeyRecord],
        test_fraction: float,
        seed: Optional[int] = None,
    ) -> SplitResult:
        """
        Shuffle the dataset with a seeded permutation and cut off the test set.

        The first ``round(test_fraction * n)`` records of the permuted dataset
        become the test set, the remainder the training set. The same seed and
        input order always produce the same split.
        """
        if not 0 < test_fraction < 1:
            raise InvalidSplitError(
                f"test_fraction must be between 0 and 1 (exclusive), got {test_fraction}"
            )
        total = len(dataset)
        if total == 0:
            raise InvalidSplitError("Cannot split an empty dataset")

        context = (
            self.context if seed is None else PipelineContext(seed=seed)
        )
        order = context.numpy_rng().permutation(total)
        shuffled = [dataset[int(i)] for i in order]

        test_size = held_out_count(test_fraction, total)
        if test_size in (0, total):
            logger.warning(
                f"Degenerate split: {test_size} of {total} records in the test set"
            )

        result = SplitResult(
            train_set=shuffled[test_size:],
            test_set=shuffled[:test_size],
        )
        logger.info(
            f"Split {total} records into {len(result.train_set)} train and {len(result.test_set)} test (seed={context.seed})"
        )
        return result
