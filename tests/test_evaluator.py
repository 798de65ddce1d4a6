"""Tests for Evaluator, using a stub model with known scores."""

import math

import numpy as np
import pytest

from transfer_classifier.classifier_trainer.evaluator import Evaluator, metrics_to_json
from transfer_classifier.lib import EvaluationError, LabeledKeyRecord


class StubModel:
    """Returns fixed scores and counts how often it is asked."""

    def __init__(self, labels, scores):
        self._labels = labels
        self.scores = np.asarray(scores, dtype=np.float64)
        self.calls = 0

    @property
    def labels(self):
        return list(self._labels)

    def score_records(self, records):
        self.calls += 1
        return self.scores[: len(records)]


def make_test_set(keys):
    labels = ["cat", "dog"]
    return [
        LabeledKeyRecord(image_path=f"/data/{i}.png", label=labels[k], label_key=k)
        for i, k in enumerate(keys)
    ]


# 6 cats then 4 dogs; sample 1 (cat) and samples 6, 7 (dogs) are mispredicted
TRUE_KEYS = [0, 0, 0, 0, 0, 0, 1, 1, 1, 1]
SCORES = [
    [0.9, 0.1],
    [0.3, 0.7],
    [0.8, 0.2],
    [0.6, 0.4],
    [0.95, 0.05],
    [0.7, 0.3],
    [0.6, 0.4],
    [0.55, 0.45],
    [0.2, 0.8],
    [0.1, 0.9],
]


@pytest.fixture
def stub_model():
    return StubModel(["cat", "dog"], SCORES)


class TestEvaluator:
    def test_micro_accuracy_counts_correct_predictions(self, stub_model) -> None:
        metrics = Evaluator().evaluate(stub_model, make_test_set(TRUE_KEYS))

        assert metrics.micro_accuracy == pytest.approx(7 / 10)
        assert metrics.num_samples == 10

    def test_macro_accuracy_is_mean_recall(self, stub_model) -> None:
        metrics = Evaluator().evaluate(stub_model, make_test_set(TRUE_KEYS))

        assert metrics.macro_accuracy == pytest.approx((5 / 6 + 2 / 4) / 2)

    def test_log_loss_uses_true_class_probability(self, stub_model) -> None:
        metrics = Evaluator().evaluate(stub_model, make_test_set(TRUE_KEYS))

        expected = np.mean(
            [-math.log(row[key]) for row, key in zip(SCORES, TRUE_KEYS)]
        )
        assert metrics.log_loss == pytest.approx(expected)
        prior = -(0.6 * math.log(0.6) + 0.4 * math.log(0.4))
        assert metrics.log_loss_reduction == pytest.approx(1 - expected / prior)

    def test_confusion_matrix(self, stub_model) -> None:
        metrics = Evaluator().evaluate(stub_model, make_test_set(TRUE_KEYS))

        assert metrics.confusion_matrix == {
            "cat": {"cat": 5, "dog": 1},
            "dog": {"cat": 2, "dog": 2},
        }
        assert metrics.confusion_counts(["cat", "dog"]) == [[5, 1], [2, 2]]

    def test_top_k_is_capped_by_class_count(self, stub_model) -> None:
        metrics = Evaluator(top_k=3).evaluate(stub_model, make_test_set(TRUE_KEYS))

        assert metrics.top_k == 2
        assert metrics.top_k_accuracy == pytest.approx(1.0)

    def test_zero_probability_gives_finite_loss(self) -> None:
        model = StubModel(["cat", "dog"], [[0.0, 1.0], [0.0, 1.0]])

        metrics = Evaluator().evaluate(model, make_test_set([0, 1]))

        assert math.isfinite(metrics.log_loss)
        assert metrics.log_loss == pytest.approx(-math.log(1e-15) / 2)

    def test_scores_each_record_once(self, stub_model) -> None:
        test_set = make_test_set(TRUE_KEYS)
        before = list(test_set)

        Evaluator().evaluate(stub_model, test_set)

        assert stub_model.calls == 1
        assert test_set == before

    def test_empty_test_set_raises(self, stub_model) -> None:
        with pytest.raises(EvaluationError):
            Evaluator().evaluate(stub_model, [])

    def test_unknown_label_key_raises(self) -> None:
        model = StubModel(["cat"], [[1.0]])
        test_set = [LabeledKeyRecord(image_path="/data/0.png", label="dog", label_key=1)]

        with pytest.raises(EvaluationError):
            Evaluator().evaluate(model, test_set)

    def test_score_shape_mismatch_raises(self) -> None:
        model = StubModel(["cat", "dog"], [[1.0, 0.0, 0.0]])

        with pytest.raises(EvaluationError):
            Evaluator().evaluate(model, make_test_set([0]))

    def test_metrics_serialise_to_json(self, stub_model) -> None:
        metrics = Evaluator().evaluate(stub_model, make_test_set(TRUE_KEYS))

        assert '"micro_accuracy": 0.7' in metrics_to_json(metrics)
