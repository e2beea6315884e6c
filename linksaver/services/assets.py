from __future__ import annotations

import logging
import os
import shutil
import tempfile
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

FAVICON_FILENAME = "favicon.jpg"
PREVIEW_FILENAME = "preview.jpg"


class LinkAssetStore:
    """Favicon and preview bytes kept on disk, one directory per link id.

    This is a cache beside the record store: every failure is logged and
    reported as "no asset", never raised.
    """

    def __init__(self, base_dir: Path | str | None):
        self.base_dir = Path(base_dir) if base_dir else None

    def _link_dir(self, link_id: uuid.UUID | str) -> Path | None:
        if self.base_dir is None:
            return None
        return self.base_dir / str(link_id).upper()

    def save_assets(
        self,
        link_id: uuid.UUID | str,
        favicon: bytes | None = None,
        preview_image: bytes | None = None,
    ) -> None:
        folder = self._link_dir(link_id)
        if folder is None:
            return
        try:
            folder.mkdir(parents=True, exist_ok=True)
            if favicon is not None:
                _write_atomic(folder / FAVICON_FILENAME, favicon)
            if preview_image is not None:
                _write_atomic(folder / PREVIEW_FILENAME, preview_image)
        except OSError as exc:
            logger.warning("Failed to save assets for link %s: %s", link_id, exc)

    def load_favicon(self, link_id: uuid.UUID | str) -> bytes | None:
        return self._load(link_id, FAVICON_FILENAME)

    def load_preview_image(self, link_id: uuid.UUID | str) -> bytes | None:
        return self._load(link_id, PREVIEW_FILENAME)

    def delete_assets(self, link_id: uuid.UUID | str) -> None:
        folder = self._link_dir(link_id)
        if folder is None or not folder.exists():
            return
        try:
            shutil.rmtree(folder)
        except OSError as exc:
            logger.warning("Failed to delete assets for link %s: %s", link_id, exc)

    def _load(self, link_id: uuid.UUID | str, filename: str) -> bytes | None:
        folder = self._link_dir(link_id)
        if folder is None:
            return None
        try:
            return (folder / filename).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Failed to read %s for link %s: %s", filename, link_id, exc)
            return None


def _write_atomic(path: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp_name, path)
    except OSError:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
