"""Tests for Splitter."""

import pytest

from transfer_classifier.dataset_builder import Splitter
from transfer_classifier.dataset_builder.splitter import held_out_count
from transfer_classifier.lib import InvalidSplitError, LabeledKeyRecord, PipelineContext


def dataset(n):
    return [
        LabeledKeyRecord(image_path=f"/data/{i}.png", label=f"l{i % 2}", label_key=i % 2)
        for i in range(n)
    ]


class TestSplitter:
    def test_split_is_reproducible(self) -> None:
        records = dataset(10)

        first = Splitter(PipelineContext(seed=1)).split(records, test_fraction=0.2)
        second = Splitter(PipelineContext(seed=1)).split(records, test_fraction=0.2)

        assert first == second

    def test_split_is_disjoint_and_covers_dataset(self) -> None:
        records = dataset(10)

        result = Splitter(PipelineContext(seed=1)).split(records, test_fraction=0.2)

        train = {r.image_path for r in result.train_set}
        test = {r.image_path for r in result.test_set}
        assert train & test == set()
        assert train | test == {r.image_path for r in records}
        assert len(result.test_set) == 2
        assert len(result.train_set) == 8

    def test_seed_changes_permutation(self) -> None:
        records = dataset(10)

        first = Splitter(PipelineContext(seed=1)).split(records, test_fraction=0.5)
        second = Splitter(PipelineContext(seed=1)).split(
            records, test_fraction=0.5, seed=2
        )

        assert first.test_set != second.test_set

    def test_input_is_not_modified(self) -> None:
        records = dataset(6)
        before = list(records)

        Splitter(PipelineContext(seed=3)).split(records, test_fraction=0.5)

        assert records == before

    def test_degenerate_split_is_returned(self) -> None:
        result = Splitter(PipelineContext(seed=1)).split(dataset(2), test_fraction=0.1)

        assert len(result.test_set) == 0
        assert len(result.train_set) == 2

    @pytest.mark.parametrize("fraction", [0.0, 1.0, -0.1, 1.5])
    def test_fraction_out_of_range_raises(self, fraction) -> None:
        with pytest.raises(InvalidSplitError):
            Splitter(PipelineContext(seed=1)).split(dataset(4), test_fraction=fraction)

    def test_empty_dataset_raises(self) -> None:
        with pytest.raises(InvalidSplitError):
            Splitter(PipelineContext(seed=1)).split([], test_fraction=0.2)


@pytest.mark.parametrize(
    "fraction, total, expected",
    [(0.2, 10, 2), (0.25, 10, 3), (0.25, 2, 1), (0.5, 3, 2), (0.1, 4, 0)],
)
def test_held_out_count_rounds_half_up(fraction, total, expected) -> None:
    assert held_out_count(fraction, total) == expected
