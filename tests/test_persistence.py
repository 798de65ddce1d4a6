"""Tests for ModelPersistence."""

import json
import zipfile

import numpy as np
import pytest

from transfer_classifier.classifier_trainer import ModelPersistence
from transfer_classifier.lib import PersistenceError
from transfer_classifier.lib.images import load_image


class TestModelPersistence:
    def test_round_trip_preserves_scores(self, trained_pipeline, test_images, tmp_path) -> None:
        path = ModelPersistence.save(trained_pipeline, tmp_path / "out" / "model.zip")

        loaded = ModelPersistence.load(path)

        assert loaded.labels == trained_pipeline.labels
        assert loaded.label_mapping == trained_pipeline.label_mapping
        for image_path in sorted(test_images.iterdir()):
            image = load_image(image_path)
            np.testing.assert_allclose(
                loaded.score_image(image), trained_pipeline.score_image(image), atol=1e-6
            )

    def test_artifact_is_self_describing(self, trained_pipeline, tmp_path) -> None:
        path = ModelPersistence.save(trained_pipeline, tmp_path / "model.zip")

        with zipfile.ZipFile(path) as archive:
            manifest = json.loads(archive.read("manifest.json"))
            assert "weights.pt" in archive.namelist()

        assert manifest["format_version"] == 1
        assert manifest["labels"] == trained_pipeline.labels
        assert manifest["feature_extractor"]["name"] == "color_histogram"
        assert manifest["head"]["num_classes"] == 2
        assert manifest["metadata"]["seed"] == 1

    def test_save_leaves_no_temporary_files(self, trained_pipeline, tmp_path) -> None:
        out = tmp_path / "out"
        ModelPersistence.save(trained_pipeline, out / "model.zip")
        ModelPersistence.save(trained_pipeline, out / "model.zip")

        assert [p.name for p in out.iterdir()] == ["model.zip"]

    def test_unwritable_path_raises(self, trained_pipeline, tmp_path) -> None:
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("")

        with pytest.raises(PersistenceError):
            ModelPersistence.save(trained_pipeline, blocker / "model.zip")

    def test_missing_artifact_raises(self, tmp_path) -> None:
        with pytest.raises(PersistenceError):
            ModelPersistence.load(tmp_path / "missing.zip")

    def test_corrupted_artifact_raises(self, tmp_path) -> None:
        path = tmp_path / "model.zip"
        path.write_bytes(b"garbage")

        with pytest.raises(PersistenceError):
            ModelPersistence.load(path)

    def test_corrupted_weights_raise(self, trained_pipeline, tmp_path) -> None:
        path = ModelPersistence.save(trained_pipeline, tmp_path / "model.zip")
        with zipfile.ZipFile(path) as archive:
            manifest = archive.read("manifest.json")
        tampered = tmp_path / "tampered.zip"
        with zipfile.ZipFile(tampered, "w") as archive:
            archive.writestr("manifest.json", manifest)
            archive.writestr("weights.pt", b"not weights")

        with pytest.raises(PersistenceError):
            ModelPersistence.load(tampered)

    def test_version_mismatch_raises(self, trained_pipeline, tmp_path) -> None:
        path = ModelPersistence.save(trained_pipeline, tmp_path / "model.zip")
        with zipfile.ZipFile(path) as archive:
            manifest = json.loads(archive.read("manifest.json"))
            weights = archive.read("weights.pt")
        manifest["format_version"] = 99
        future = tmp_path / "future.zip"
        with zipfile.ZipFile(future, "w") as archive:
            archive.writestr("manifest.json", json.dumps(manifest))
            archive.writestr("weights.pt", weights)

        with pytest.raises(PersistenceError, match="version"):
            ModelPersistence.load(future)

    def test_damaged_compressed_weights_raise(self, trained_pipeline, tmp_path) -> None:
        path = ModelPersistence.save(trained_pipeline, tmp_path / "model.zip")
        with zipfile.ZipFile(path) as archive:
            info = archive.getinfo("weights.pt")
        assert info.compress_type == zipfile.ZIP_DEFLATED

        data = bytearray(path.read_bytes())
        # Local file header: 30 fixed bytes, then the name and extra field
        name_length = int.from_bytes(data[info.header_offset + 26:info.header_offset + 28], "little")
        extra_length = int.from_bytes(data[info.header_offset + 28:info.header_offset + 30], "little")
        start = info.header_offset + 30 + name_length + extra_length
        data[start:start + 8] = b"\xff" * 8
        path.write_bytes(bytes(data))

        with pytest.raises(PersistenceError, match="weights.pt"):
            ModelPersistence.load(path)
