from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from dateutil import parser as dt_parser
from sqlalchemy.exc import SQLAlchemyError

from linksaver.models import Folder, Link, Tag, utcnow
from linksaver.services.common import name_key, normalize_name, url_key
from linksaver.store import RecordStore, StorageCommitError

logger = logging.getLogger(__name__)

CURRENT_BACKUP_VERSION = 1


class UnsupportedVersionError(Exception):
    def __init__(self, version):
        super().__init__(
            f"Unsupported backup version {version!r} "
            f"(expected {CURRENT_BACKUP_VERSION})"
        )
        self.version = version


class BackupFormatError(ValueError):
    pass


@dataclass
class FolderBackupRecord:
    name: str
    icon_name: str
    date_created: datetime
    sort_order: int


@dataclass
class TagBackupRecord:
    name: str
    color_hex: str
    date_created: datetime


@dataclass
class LinkBackupRecord:
    url: str
    date_added: datetime
    title: str | None = None
    link_description: str | None = None
    notes: str | None = None
    is_favorite: bool = False
    is_pinned: bool = False
    folder_name: str | None = None
    tag_names: list[str] = field(default_factory=list)


@dataclass
class LinkSaverBackup:
    version: int
    created_at: datetime
    folders: list[FolderBackupRecord] = field(default_factory=list)
    tags: list[TagBackupRecord] = field(default_factory=list)
    links: list[LinkBackupRecord] = field(default_factory=list)


@dataclass
class ImportReport:
    folders_created: int = 0
    folders_skipped: int = 0
    tags_created: int = 0
    tags_skipped: int = 0
    links_created: int = 0
    links_skipped: int = 0


def make_backup(links, folders, tags, created_at: datetime | None = None) -> LinkSaverBackup:
    return LinkSaverBackup(
        version=CURRENT_BACKUP_VERSION,
        created_at=created_at or utcnow(),
        folders=[
            FolderBackupRecord(
                name=folder.name,
                icon_name=folder.icon_name,
                date_created=folder.date_created,
                sort_order=folder.sort_order,
            )
            for folder in folders
        ],
        tags=[
            TagBackupRecord(
                name=tag.name,
                color_hex=tag.color_hex,
                date_created=tag.date_created,
            )
            for tag in tags
        ],
        links=[
            LinkBackupRecord(
                url=link.url,
                date_added=link.date_added,
                title=link.title,
                link_description=link.link_description,
                notes=link.notes,
                is_favorite=bool(link.is_favorite),
                is_pinned=bool(link.is_pinned),
                folder_name=link.folder.name if link.folder else None,
                tag_names=[tag.name for tag in link.tags],
            )
            for link in links
        ],
    )


def export_backup(store: RecordStore) -> LinkSaverBackup:
    return make_backup(
        links=store.fetch_all(Link),
        folders=store.fetch_all(Folder),
        tags=store.fetch_all(Tag),
    )


def _format_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="seconds")
    return text.replace("+00:00", "Z")


def _parse_date(value) -> datetime:
    if not isinstance(value, str):
        raise BackupFormatError(f"Expected an ISO-8601 timestamp, got {value!r}")
    try:
        parsed = dt_parser.isoparse(value)
    except ValueError as exc:
        raise BackupFormatError(f"Invalid timestamp {value!r}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def backup_to_dict(backup: LinkSaverBackup) -> dict:
    return {
        "version": backup.version,
        "createdAt": _format_date(backup.created_at),
        "folders": [
            {
                "name": record.name,
                "iconName": record.icon_name,
                "dateCreated": _format_date(record.date_created),
                "sortOrder": record.sort_order,
            }
            for record in backup.folders
        ],
        "tags": [
            {
                "name": record.name,
                "colorHex": record.color_hex,
                "dateCreated": _format_date(record.date_created),
            }
            for record in backup.tags
        ],
        "links": [
            {
                "url": record.url,
                "dateAdded": _format_date(record.date_added),
                "title": record.title,
                "linkDescription": record.link_description,
                "notes": record.notes,
                "isFavorite": record.is_favorite,
                "isPinned": record.is_pinned,
                "folderName": record.folder_name,
                "tagNames": list(record.tag_names),
            }
            for record in backup.links
        ],
    }


def _require(payload: dict, key: str, kind):
    if not isinstance(payload, dict) or key not in payload:
        raise BackupFormatError(f"Missing key {key!r}")
    value = payload[key]
    # bool is an int subclass; keep it out of integer fields.
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise BackupFormatError(f"Key {key!r} has unexpected type {type(value).__name__}")
    return value


def _optional_str(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise BackupFormatError(f"Key {key!r} must be a string or null")
    return value


def backup_from_dict(payload) -> LinkSaverBackup:
    version = _require(payload, "version", int)
    created_at = _parse_date(_require(payload, "createdAt", str))

    folders = [
        FolderBackupRecord(
            name=_require(item, "name", str),
            icon_name=_require(item, "iconName", str),
            date_created=_parse_date(_require(item, "dateCreated", str)),
            sort_order=_require(item, "sortOrder", int),
        )
        for item in _require(payload, "folders", list)
    ]
    tags = [
        TagBackupRecord(
            name=_require(item, "name", str),
            color_hex=_require(item, "colorHex", str),
            date_created=_parse_date(_require(item, "dateCreated", str)),
        )
        for item in _require(payload, "tags", list)
    ]

    links = []
    for item in _require(payload, "links", list):
        tag_names = _require(item, "tagNames", list)
        if not all(isinstance(name, str) for name in tag_names):
            raise BackupFormatError("Key 'tagNames' must hold strings")
        links.append(
            LinkBackupRecord(
                url=_require(item, "url", str),
                date_added=_parse_date(_require(item, "dateAdded", str)),
                title=_optional_str(item, "title"),
                link_description=_optional_str(item, "linkDescription"),
                notes=_optional_str(item, "notes"),
                is_favorite=_require(item, "isFavorite", bool),
                is_pinned=_require(item, "isPinned", bool),
                folder_name=_optional_str(item, "folderName"),
                tag_names=tag_names,
            )
        )

    return LinkSaverBackup(
        version=version,
        created_at=created_at,
        folders=folders,
        tags=tags,
        links=links,
    )


def encode_backup(backup: LinkSaverBackup) -> str:
    return json.dumps(backup_to_dict(backup), indent=2, sort_keys=True, ensure_ascii=False)


def decode_backup(data: str | bytes) -> LinkSaverBackup:
    try:
        payload = json.loads(data)
    except (TypeError, ValueError) as exc:
        raise BackupFormatError(f"Backup is not valid JSON: {exc}") from exc
    return backup_from_dict(payload)


def import_backup(backup: LinkSaverBackup, store: RecordStore) -> ImportReport:
    """Add the backup's records to ``store``; existing records are never touched.

    Folders and Tags are matched by trimmed name, Links by normalized URL.
    Matches are skipped, everything else is created with a fresh id and
    committed in one transaction.
    """
    if backup.version != CURRENT_BACKUP_VERSION:
        raise UnsupportedVersionError(backup.version)

    try:
        with store.staging():
            report = _stage_import(backup, store)
        store.save()
    except StorageCommitError:
        raise
    except SQLAlchemyError as exc:
        store.discard()
        raise StorageCommitError(f"Failed to import backup into {store.label}: {exc}") from exc
    except Exception:
        store.discard()
        raise

    logger.info(
        "Imported backup into %s: %d folders, %d tags, %d links created "
        "(%d links already present)",
        store.label,
        report.folders_created,
        report.tags_created,
        report.links_created,
        report.links_skipped,
    )
    return report


def _stage_import(backup: LinkSaverBackup, store: RecordStore) -> ImportReport:
    report = ImportReport()

    folder_by_name: dict = {}
    for folder in store.fetch_all(Folder):
        folder_by_name.setdefault(name_key(folder.name), folder)
    tag_by_name: dict = {}
    for tag in store.fetch_all(Tag):
        tag_by_name.setdefault(name_key(tag.name), tag)
    known_urls = {url_key(link.url) for link in store.fetch_all(Link)}

    for record in backup.folders:
        key = name_key(record.name)
        if key in folder_by_name:
            report.folders_skipped += 1
            continue
        created = Folder(
            id=uuid.uuid4(),
            name=normalize_name(record.name),
            icon_name=record.icon_name,
            date_created=record.date_created,
            sort_order=record.sort_order,
        )
        store.insert(created)
        folder_by_name[key] = created
        report.folders_created += 1

    for record in backup.tags:
        key = name_key(record.name)
        if key in tag_by_name:
            report.tags_skipped += 1
            continue
        created = Tag(
            id=uuid.uuid4(),
            name=normalize_name(record.name),
            color_hex=record.color_hex,
            date_created=record.date_created,
        )
        store.insert(created)
        tag_by_name[key] = created
        report.tags_created += 1

    for record in backup.links:
        key = url_key(record.url)
        if key in known_urls:
            report.links_skipped += 1
            continue

        # Assets are never part of a backup; the new link starts without them.
        created = Link(
            id=uuid.uuid4(),
            url=record.url,
            date_added=record.date_added,
            title=record.title,
            link_description=record.link_description,
            notes=record.notes,
            is_favorite=record.is_favorite,
            is_pinned=record.is_pinned,
            metadata_fetched=False,
            favicon=None,
            preview_image=None,
        )
        if record.folder_name is not None:
            created.folder = folder_by_name.get(name_key(record.folder_name))

        tags = []
        for tag_name in record.tag_names:
            tag = tag_by_name.get(name_key(tag_name))
            if tag is not None and tag not in tags:
                tags.append(tag)
        created.tags = tags

        store.insert(created)
        known_urls.add(key)
        report.links_created += 1

    return report
