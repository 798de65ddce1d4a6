"""Tests for LabelEncoder."""

import pytest

from transfer_classifier.dataset_builder import LabelEncoder
from transfer_classifier.lib import EncodingError, ImageRecord


def records(*labels):
    return [ImageRecord(image_path=f"/data/{i}.png", label=l) for i, l in enumerate(labels)]


class TestLabelEncoder:
    def test_keys_follow_first_occurrence(self) -> None:
        encoder = LabelEncoder()

        mapping = encoder.fit(records("zebra", "ant", "zebra", "moth", "ant"))

        assert mapping == {"zebra": 0, "ant": 1, "moth": 2}
        assert encoder.labels == ["zebra", "ant", "moth"]

    def test_decode_inverts_encode(self) -> None:
        encoder = LabelEncoder()
        encoder.fit(records("cat", "dog", "bird"))

        for label in ["cat", "dog", "bird"]:
            assert encoder.decode(encoder.encode(label)) == label

    def test_apply_adds_label_key(self) -> None:
        encoder = LabelEncoder()
        encoder.fit(records("cat", "dog"))

        encoded = encoder.apply(ImageRecord(image_path="/data/x.png", label="dog"))

        assert encoded.label_key == 1
        assert encoded.label == "dog"
        assert encoded.image_path == "/data/x.png"

    def test_apply_unseen_label_raises(self) -> None:
        encoder = LabelEncoder()
        encoder.fit(records("cat", "dog"))

        with pytest.raises(EncodingError):
            encoder.apply(ImageRecord(image_path="/data/x.png", label="horse"))

    def test_apply_before_fit_raises(self) -> None:
        with pytest.raises(EncodingError):
            LabelEncoder().apply(ImageRecord(image_path="/data/x.png", label="cat"))

    def test_decode_unknown_key_raises(self) -> None:
        encoder = LabelEncoder()
        encoder.fit(records("cat"))

        with pytest.raises(EncodingError):
            encoder.decode(5)

    def test_from_mapping_restores_order(self) -> None:
        encoder = LabelEncoder.from_mapping({"dog": 1, "cat": 0})

        assert encoder.labels == ["cat", "dog"]
        assert encoder.encode("dog") == 1

    def test_from_mapping_rejects_gaps(self) -> None:
        with pytest.raises(EncodingError):
            LabelEncoder.from_mapping({"cat": 0, "dog": 2})
