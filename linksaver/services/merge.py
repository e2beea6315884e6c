from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from linksaver.models import Folder, Link, Tag
from linksaver.services.common import name_key, url_key
from linksaver.store import RecordStore, StorageCommitError

logger = logging.getLogger(__name__)


@dataclass
class MergeReport:
    folders_created: int = 0
    folders_matched: int = 0
    tags_created: int = 0
    tags_matched: int = 0
    links_created: int = 0
    links_skipped: int = 0


def _index_first(records, key) -> dict:
    index: dict = {}
    for record in records:
        index.setdefault(key(record), record)
    return index


def merge_stores(source: RecordStore, destination: RecordStore) -> MergeReport:
    """Merge every Folder, Tag and Link of ``source`` into ``destination``.

    The destination wins every conflict: a source record whose normalized
    name (Folders, Tags) or URL (Links) already exists in the destination is
    dropped, as is one whose id already exists. Nothing is committed unless
    the whole merge succeeds.
    """
    try:
        with destination.staging():
            report = _stage_merge(source, destination)
        destination.save()
    except StorageCommitError:
        raise
    except SQLAlchemyError as exc:
        destination.discard()
        raise StorageCommitError(
            f"Failed to merge {source.label} into {destination.label}: {exc}"
        ) from exc
    except Exception:
        destination.discard()
        raise

    logger.info(
        "Merged %s into %s: %d folders created (%d matched), %d tags created "
        "(%d matched), %d links created (%d skipped)",
        source.label,
        destination.label,
        report.folders_created,
        report.folders_matched,
        report.tags_created,
        report.tags_matched,
        report.links_created,
        report.links_skipped,
    )
    return report


def _stage_merge(source: RecordStore, destination: RecordStore) -> MergeReport:
    report = MergeReport()

    existing_folders = destination.fetch_all(Folder)
    folder_by_name = _index_first(existing_folders, lambda f: name_key(f.name))
    folder_by_id = {folder.id: folder for folder in existing_folders}

    existing_tags = destination.fetch_all(Tag)
    tag_by_name = _index_first(existing_tags, lambda t: name_key(t.name))
    tag_by_id = {tag.id: tag for tag in existing_tags}

    existing_links = destination.fetch_all(Link)
    link_by_url = _index_first(existing_links, lambda l: url_key(l.url))
    link_ids = {link.id for link in existing_links}

    # Source id -> destination record, used to rewire link relationships.
    folder_map: dict = {}
    tag_map: dict = {}

    for source_folder in source.fetch_all(Folder):
        key = name_key(source_folder.name)
        existing = folder_by_name.get(key) or folder_by_id.get(source_folder.id)
        if existing is not None:
            folder_map[source_folder.id] = existing
            report.folders_matched += 1
            continue

        created = Folder(
            id=source_folder.id,
            name=source_folder.name,
            icon_name=source_folder.icon_name,
            date_created=source_folder.date_created,
            sort_order=source_folder.sort_order,
        )
        destination.insert(created)
        folder_map[source_folder.id] = created
        folder_by_name[key] = created
        folder_by_id[created.id] = created
        report.folders_created += 1

    source_tags = source.fetch_all(Tag)
    for source_tag in source_tags:
        key = name_key(source_tag.name)
        existing = tag_by_name.get(key) or tag_by_id.get(source_tag.id)
        if existing is not None:
            tag_map[source_tag.id] = existing
            report.tags_matched += 1
            continue

        created = Tag(
            id=source_tag.id,
            name=source_tag.name,
            color_hex=source_tag.color_hex,
            date_created=source_tag.date_created,
        )
        destination.insert(created)
        tag_map[source_tag.id] = created
        tag_by_name[key] = created
        tag_by_id[created.id] = created
        report.tags_created += 1

    for source_link in source.fetch_all(Link):
        key = url_key(source_link.url)
        if key in link_by_url or source_link.id in link_ids:
            report.links_skipped += 1
            continue

        # favicon/preview_image stay empty: assets never travel with a merge.
        created = Link(
            id=source_link.id,
            url=source_link.url,
            date_added=source_link.date_added,
            title=source_link.title,
            link_description=source_link.link_description,
            notes=source_link.notes,
            is_favorite=bool(source_link.is_favorite),
            is_pinned=bool(source_link.is_pinned),
            metadata_fetched=bool(source_link.metadata_fetched),
            last_metadata_fetch_attempt=source_link.last_metadata_fetch_attempt,
            favicon=None,
            preview_image=None,
        )

        if source_link.folder_id is not None:
            folder = folder_map.get(source_link.folder_id)
            if folder is None and source_link.folder is not None:
                folder = folder_by_name.get(name_key(source_link.folder.name))
            created.folder = folder

        tags = []
        for source_tag in source_link.tags:
            tag = tag_map.get(source_tag.id) or tag_by_name.get(name_key(source_tag.name))
            if tag is not None and tag not in tags:
                tags.append(tag)
        created.tags = tags

        destination.insert(created)
        link_by_url[key] = created
        link_ids.add(created.id)
        report.links_created += 1

    return report
