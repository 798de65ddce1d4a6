import io
import json
import os
import tempfile
import zipfile
import zlib
from pathlib import Path
from typing import List, Literal, Union

import torch
from pydantic import BaseModel, Field, ValidationError

from transfer_classifier.feature_extractor import (
    FeatureExtractorSpec,
    build_feature_extractor,
)
from transfer_classifier.lib import PersistenceError, setup_logger

from .config import HeadType
from .model import build_head
from .pipeline import PipelineMetadata, TrainedPipeline

logger = setup_logger(__name__)

ARTIFACT_FORMAT = "transfer-classifier"
ARTIFACT_VERSION = 1
MANIFEST_NAME = "manifest.json"
WEIGHTS_NAME = "weights.pt"

# Raised by zipfile while reading a damaged member
ARCHIVE_READ_ERRORS = (zipfile.BadZipFile, KeyError, EOFError, OSError, zlib.error)


class HeadSpec(BaseModel):
    type: HeadType
    input_dim: int = Field(..., ge=1)
    num_classes: int = Field(..., ge=1)


class ArtifactManifest(BaseModel):
    """Self-description stored next to the weights in a model artifact."""

    format: Literal["transfer-classifier"] = ARTIFACT_FORMAT
    format_version: int = ARTIFACT_VERSION
    # Ordered by label key
    labels: List[str]
    feature_extractor: FeatureExtractorSpec
    head: HeadSpec
    metadata: PipelineMetadata


class ModelPersistence:
    """
    Saves trained pipelines to a zip artifact and loads them back.

    The artifact holds the label mapping, the transform description and the
    head weights, so loading needs neither the dataset nor the run config.
    """

    @staticmethod
    def save(model: TrainedPipeline, path: Union[str, Path]) -> Path:
        path = Path(path)
        manifest = ArtifactManifest(
            labels=model.labels,
            feature_extractor=model.extractor.spec,
            head=HeadSpec(
                type=model.head_type,
                input_dim=model.feature_dim,
                num_classes=model.num_classes,
            ),
            metadata=model.metadata,
        )
        weights = io.BytesIO()
        torch.save(model.head.state_dict(), weights)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write beside the target then rename, so readers never see a partial file
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    with zipfile.ZipFile(f, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                        archive.writestr(MANIFEST_NAME, manifest.model_dump_json(indent=2))
                        archive.writestr(WEIGHTS_NAME, weights.getvalue())
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError(f"Could not write model artifact ({e})", str(path)) from e

        logger.info(f"Model saved to: {path}")
        return path

    @staticmethod
    def _read_member(archive: zipfile.ZipFile, name: str, path: Path) -> bytes:
        try:
            return archive.read(name)
        except ARCHIVE_READ_ERRORS as e:
            raise PersistenceError(
                f"Corrupted model artifact, cannot read {name} ({e})", str(path)
            ) from e

    @staticmethod
    def _read_manifest(archive: zipfile.ZipFile, path: Path) -> ArtifactManifest:
        data = ModelPersistence._read_member(archive, MANIFEST_NAME, path)
        try:
            raw = json.loads(data)
        except ValueError as e:
            raise PersistenceError(f"Unreadable manifest ({e})", str(path)) from e

        if not isinstance(raw, dict) or raw.get("format") != ARTIFACT_FORMAT:
            raise PersistenceError("Not a transfer-classifier model artifact", str(path))
        if raw.get("format_version") != ARTIFACT_VERSION:
            raise PersistenceError(
                f"Unsupported artifact version {raw.get('format_version')}, expected {ARTIFACT_VERSION}",
                str(path),
            )
        try:
            manifest = ArtifactManifest.model_validate(raw)
        except ValidationError as e:
            raise PersistenceError(f"Invalid manifest ({e})", str(path)) from e

        if len(manifest.labels) != manifest.head.num_classes:
            raise PersistenceError(
                f"Manifest lists {len(manifest.labels)} labels for a {manifest.head.num_classes}-class head",
                str(path),
            )
        return manifest

    @staticmethod
    def load(path: Union[str, Path]) -> TrainedPipeline:
        path = Path(path)
        if not path.is_file():
            raise PersistenceError("Model artifact not found", str(path))

        try:
            with zipfile.ZipFile(path, "r") as archive:
                manifest = ModelPersistence._read_manifest(archive, path)
                weights = ModelPersistence._read_member(archive, WEIGHTS_NAME, path)
        except ARCHIVE_READ_ERRORS as e:
            raise PersistenceError(f"Corrupted model artifact ({e})", str(path)) from e

        try:
            state_dict = torch.load(
                io.BytesIO(weights), map_location="cpu", weights_only=True
            )
            head = build_head(
                manifest.head.type, manifest.head.input_dim, manifest.head.num_classes
            )
            head.load_state_dict(state_dict)
        except Exception as e:
            raise PersistenceError(f"Could not restore head weights ({e})", str(path)) from e

        try:
            extractor = build_feature_extractor(manifest.feature_extractor)
        except Exception as e:
            raise PersistenceError(
                f"Could not rebuild feature extractor '{manifest.feature_extractor.name}' ({e})",
                str(path),
            ) from e

        if extractor.feature_dim != manifest.head.input_dim:
            raise PersistenceError(
                f"Feature extractor produces {extractor.feature_dim} features, head expects {manifest.head.input_dim}",
                str(path),
            )

        logger.info(f"Model loaded from: {path}")
        return TrainedPipeline(
            labels=manifest.labels,
            extractor=extractor,
            head=head,
            head_type=manifest.head.type,
            metadata=manifest.metadata,
        )
