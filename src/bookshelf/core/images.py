"""Pick cover images and keep copies in the covers directory."""

from __future__ import annotations

import os
import shutil
import uuid
from pathlib import Path

import structlog

from .errors import ImagePickError

log = structlog.get_logger()

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic")


class ImagePicker:
    """Turn a chosen image into a local ``file://`` cover reference.

    Picked files are copied under a fresh name so later edits or deletes of
    the original do not affect the catalog.
    """

    def __init__(self, covers_dir: Path | None = None) -> None:
        if covers_dir is None:
            covers_dir = Path(os.environ.get("BOOKSHELF_DATA_DIR", ".bookshelf")) / "covers"
        self.covers_dir = covers_dir
        self.covers_dir.mkdir(parents=True, exist_ok=True)

    def _target(self, name: str) -> Path:
        suffix = Path(name).suffix.lower()
        if suffix not in IMAGE_EXTENSIONS:
            raise ImagePickError(f"Not an image file: {name}")
        return self.covers_dir / f"{uuid.uuid4().hex}{suffix}"

    def pick(self, source: Path | str | None) -> str | None:
        """Copy ``source`` into the covers directory and return its URI.

        ``None`` means the user cancelled the dialog and yields ``None``.
        """
        if source is None:
            log.debug("image_pick_cancelled")
            return None

        source = Path(source)
        if not source.is_file():
            raise ImagePickError(f"No such image: {source}")
        target = self._target(source.name)
        try:
            shutil.copyfile(source, target)
        except OSError as e:
            raise ImagePickError(f"Could not copy {source}: {e}") from e
        log.info("image_picked", source=str(source), cover=target.name)
        return target.resolve().as_uri()

    def save_upload(self, filename: str, data: bytes) -> str:
        """Store uploaded image bytes and return the new cover URI."""
        target = self._target(filename)
        try:
            target.write_bytes(data)
        except OSError as e:
            raise ImagePickError(f"Could not save {filename}: {e}") from e
        log.info("image_uploaded", filename=filename, cover=target.name, size=len(data))
        return target.resolve().as_uri()
