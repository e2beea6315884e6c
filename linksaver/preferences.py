from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from dateutil import parser as dt_parser

logger = logging.getLogger(__name__)

CLOUD_SYNC_ENABLED_KEY = "linksaver.icloud.sync.enabled"
BACKUP_LAST_ACTION_KEY = "linksaver.backup.lastAction"
BACKUP_MIN_INTERVAL_SECONDS = 8.0


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Preferences:
    """Small JSON key/value settings file; ``path=None`` keeps values in memory."""

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path) if path else None
        self._memory: dict = {}

    def _load(self) -> dict:
        if self.path is None:
            return dict(self._memory)
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable preferences %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _store(self, data: dict) -> None:
        if self.path is None:
            self._memory = dict(data)
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)

    def get(self, key: str, default=None):
        return self._load().get(key, default)

    def set(self, key: str, value) -> None:
        data = self._load()
        data[key] = value
        self._store(data)

    @property
    def cloud_sync_enabled(self) -> bool:
        return bool(self.get(CLOUD_SYNC_ENABLED_KEY, False))

    @cloud_sync_enabled.setter
    def cloud_sync_enabled(self, enabled: bool) -> None:
        self.set(CLOUD_SYNC_ENABLED_KEY, bool(enabled))

    @property
    def backup_last_action(self) -> datetime | None:
        value = self.get(BACKUP_LAST_ACTION_KEY)
        if not value:
            return None
        try:
            return _as_utc(dt_parser.isoparse(value))
        except (TypeError, ValueError):
            return None

    def can_perform_backup_action(
        self,
        now: datetime | None = None,
        minimum_interval: float = BACKUP_MIN_INTERVAL_SECONDS,
    ) -> bool:
        last = self.backup_last_action
        if last is None:
            return True
        now = _as_utc(now or datetime.now(timezone.utc))
        return (now - last).total_seconds() >= minimum_interval

    def mark_backup_action_performed(self, now: datetime | None = None) -> None:
        now = _as_utc(now or datetime.now(timezone.utc))
        self.set(BACKUP_LAST_ACTION_KEY, now.isoformat())
