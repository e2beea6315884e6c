from __future__ import annotations

import logging
import threading

from linksaver.preferences import Preferences
from linksaver.services.merge import merge_stores
from linksaver.store import RecordStore, StorageError

logger = logging.getLogger(__name__)

SYNC_MODE_LOCAL = "local"
SYNC_MODE_CLOUD = "cloud"

SYNC_MODES = {SYNC_MODE_LOCAL, SYNC_MODE_CLOUD}


class SyncModeController:
    """Switches the active store between the local and the cloud database.

    Switching merges the current store into the target store first; the
    persisted mode only changes once that merge has committed.
    """

    def __init__(self, preferences: Preferences, store_uris: dict[str, str]):
        missing = SYNC_MODES - set(store_uris)
        if missing:
            raise ValueError(f"Missing store URI for sync modes: {sorted(missing)}")
        self.preferences = preferences
        self.store_uris = dict(store_uris)
        self.is_switching = False
        self._lock = threading.Lock()

    @property
    def current_mode(self) -> str:
        return SYNC_MODE_CLOUD if self.preferences.cloud_sync_enabled else SYNC_MODE_LOCAL

    def store_uri(self, mode: str | None = None) -> str:
        return self.store_uris[mode or self.current_mode]

    def open_store(self, mode: str | None = None) -> RecordStore:
        mode = mode or self.current_mode
        return RecordStore.open(self.store_uri(mode), label=f"{mode} store")

    def set_cloud_sync_enabled(self, enabled: bool) -> bool:
        """Returns True when the mode actually changed."""
        if enabled == self.preferences.cloud_sync_enabled:
            return False
        with self._lock:
            if self.is_switching:
                return False
            self.is_switching = True

        source_mode = self.current_mode
        destination_mode = SYNC_MODE_CLOUD if enabled else SYNC_MODE_LOCAL
        try:
            with self.open_store(source_mode) as source, self.open_store(
                destination_mode
            ) as destination:
                merge_stores(source, destination)
        except StorageError as exc:
            logger.warning(
                "Failed to switch sync mode from %s to %s, keeping %s: %s",
                source_mode,
                destination_mode,
                source_mode,
                exc,
            )
            return False
        finally:
            self.is_switching = False

        self.preferences.cloud_sync_enabled = enabled
        logger.info("Switched sync mode from %s to %s", source_mode, destination_mode)
        return True
