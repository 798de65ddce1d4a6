import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

from transfer_classifier.lib import (
    DEFAULT_IMAGE_EXTENSIONS,
    ImageRecord,
    NotFoundError,
    setup_logger,
)

logger = setup_logger(__name__)


def label_from_filename(filename: str) -> str:
    """Leading run of letters of a file name, e.g. ``cat01.png`` -> ``cat``."""
    for index, char in enumerate(filename):
        if not char.isalpha():
            return filename[:index]
    return filename


class DatasetLoader:
    """Enumerates labelled image files under a root directory."""

    def __init__(
        self,
        root: Union[str, Path],
        use_folder_name_as_label: bool = True,
        extensions: Optional[Iterable[str]] = None,
    ):
        self.root = Path(root)
        self.use_folder_name_as_label = use_folder_name_as_label
        self.extensions = {
            ext.lower() for ext in (extensions or DEFAULT_IMAGE_EXTENSIONS)
        }

    def _check_root(self) -> None:
        if not self.root.exists():
            raise NotFoundError(f"Image directory {self.root} does not exist")
        if not self.root.is_dir():
            raise NotFoundError(f"Image directory {self.root} is not a directory")

    def _image_files(self) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames.sort()
            directory = Path(dirpath)
            if self.use_folder_name_as_label and directory == self.root:
                # Files directly in the root have no label folder
                continue
            for filename in sorted(filenames):
                if Path(filename).suffix.lower() in self.extensions:
                    yield directory / filename

    def _records(self) -> Iterator[ImageRecord]:
        count = 0
        for image_path in self._image_files():
            if self.use_folder_name_as_label:
                label = image_path.parent.name
            else:
                label = label_from_filename(image_path.name)
            count += 1
            yield ImageRecord(image_path=str(image_path), label=label)
        logger.info(f"Loaded {count} images from {self.root}")

    def load(self) -> Iterator[ImageRecord]:
        """
        Lazily yield one record per image file.

        The root directory is checked immediately so a missing folder fails
        before anything downstream runs.
        """
        self._check_root()
        return self._records()

    def load_all(self) -> List[ImageRecord]:
        return list(self.load())
