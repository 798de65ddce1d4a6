from typing import Dict, Iterable, List, Mapping, Optional

from transfer_classifier.lib import (
    EncodingError,
    ImageRecord,
    LabeledKeyRecord,
    setup_logger,
)

logger = setup_logger(__name__)


class LabelEncoder:
    """
    Maps label strings to integer keys.

    Keys are assigned in order of first appearance during ``fit``, so the
    mapping follows the dataset rather than the alphabet.
    """

    def __init__(self):
        self._mapping: Optional[Dict[str, int]] = None
        self._labels: List[str] = []

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, int]) -> "LabelEncoder":
        """Rebuild an encoder from a previously fitted mapping."""
        ordered = sorted(mapping.items(), key=lambda item: item[1])
        if [key for _, key in ordered] != list(range(len(ordered))):
            raise EncodingError(f"Label keys must be 0..{len(ordered) - 1}: {mapping}")
        encoder = cls()
        encoder._mapping = {label: key for label, key in ordered}
        encoder._labels = [label for label, _ in ordered]
        return encoder

    @property
    def is_fitted(self) -> bool:
        return self._mapping is not None

    @property
    def mapping(self) -> Dict[str, int]:
        if self._mapping is None:
            raise EncodingError("LabelEncoder has not been fitted")
        return dict(self._mapping)

    @property
    def labels(self) -> List[str]:
        """Labels ordered by key."""
        return list(self._labels)

    def fit(self, dataset: Iterable[ImageRecord]) -> Dict[str, int]:
        mapping: Dict[str, int] = {}
        for record in dataset:
            if record.label not in mapping:
                mapping[record.label] = len(mapping)
        self._mapping = mapping
        self._labels = list(mapping)
        logger.info(f"Label mapping: {mapping}")
        return dict(mapping)

    def encode(self, label: str) -> int:
        if self._mapping is None:
            raise EncodingError("LabelEncoder has not been fitted")
        try:
            return self._mapping[label]
        except KeyError:
            raise EncodingError(
                f"Label '{label}' was not seen while fitting the encoder"
            ) from None

    def decode(self, key: int) -> str:
        if self._mapping is None:
            raise EncodingError("LabelEncoder has not been fitted")
        if not 0 <= key < len(self._labels):
            raise EncodingError(f"Label key {key} is outside the fitted mapping")
        return self._labels[key]

    def apply(self, record: ImageRecord) -> LabeledKeyRecord:
        return LabeledKeyRecord(
            image_path=record.image_path,
            label=record.label,
            label_key=self.encode(record.label),
        )

    def apply_all(self, dataset: Iterable[ImageRecord]) -> List[LabeledKeyRecord]:
        return [self.apply(record) for record in dataset]
