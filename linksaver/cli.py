from __future__ import annotations

from pathlib import Path

import click
from flask import current_app

from linksaver.extensions import db
from linksaver.models import Link
from linksaver.services.backup import (
    BackupFormatError,
    UnsupportedVersionError,
    decode_backup,
    encode_backup,
    export_backup,
    import_backup,
)
from linksaver.services.links import delete_link, group_links_by_domain, save_shared_link
from linksaver.services.merge import merge_stores
from linksaver.services.metadata import fetch_and_update_metadata
from linksaver.services.sync_mode import SYNC_MODE_CLOUD, SYNC_MODES
from linksaver.store import RecordStore, StorageError


def _active_store() -> RecordStore:
    return RecordStore(db.session, label="active store")


def _check_backup_throttle() -> None:
    preferences = current_app.extensions["linksaver.preferences"]
    interval = float(current_app.config["BACKUP_MIN_INTERVAL_SECONDS"])
    if not preferences.can_perform_backup_action(minimum_interval=interval):
        raise click.ClickException(
            f"Please wait {interval:g} seconds between backup actions."
        )
    preferences.mark_backup_action_performed()


def register_cli(app):
    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        click.echo("Initialized LinkSaver database.")

    @app.cli.command("add-link")
    @click.argument("url")
    @click.option("--title", default=None)
    def add_link_command(url: str, title: str | None):
        try:
            link = save_shared_link(_active_store(), url, title=title)
        except StorageError as exc:
            raise click.ClickException(str(exc)) from exc
        if link is None:
            raise click.ClickException(f"Not a web URL: {url}")
        click.echo(f"{link.id} {link.url}")

    @app.cli.command("delete-link")
    @click.argument("link_id", type=click.UUID)
    def delete_link_command(link_id):
        store = _active_store()
        matches = store.fetch_all(Link, Link.id == link_id)
        if not matches:
            raise click.ClickException(f"No link with id {link_id}")
        link = matches[0]
        url = link.url
        try:
            delete_link(store, link, current_app.extensions["linksaver.assets"])
        except StorageError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Deleted {url}")

    @app.cli.command("list-domains")
    def list_domains_command():
        for group in group_links_by_domain(_active_store().fetch_all(Link)):
            click.echo(f"{group.domain or '(no domain)'}\t{len(group.links)}")

    @app.cli.command("export-backup")
    @click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
    def export_backup_command(output: Path):
        _check_backup_throttle()
        backup = export_backup(_active_store())
        output.write_text(encode_backup(backup), encoding="utf-8")
        click.echo(
            f"Exported {len(backup.links)} links, {len(backup.folders)} folders "
            f"and {len(backup.tags)} tags to {output}."
        )

    @app.cli.command("import-backup")
    @click.argument(
        "source", type=click.Path(exists=True, dir_okay=False, path_type=Path)
    )
    def import_backup_command(source: Path):
        _check_backup_throttle()
        try:
            backup = decode_backup(source.read_bytes())
            report = import_backup(backup, _active_store())
        except (BackupFormatError, UnsupportedVersionError, StorageError) as exc:
            current_app.logger.warning("Backup import from %s failed: %s", source, exc)
            raise click.ClickException(str(exc)) from exc
        click.echo(
            f"Imported {report.links_created} links ({report.links_skipped} already "
            f"present), {report.folders_created} folders, {report.tags_created} tags."
        )

    @app.cli.command("merge-store")
    @click.argument("source_uri")
    def merge_store_command(source_uri: str):
        try:
            with RecordStore.open(source_uri) as source:
                report = merge_stores(source, _active_store())
        except StorageError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(
            f"Merged {report.links_created} links, {report.folders_created} folders "
            f"and {report.tags_created} tags ({report.links_skipped} links skipped)."
        )

    @app.cli.command("sync-mode")
    @click.argument("mode", required=False, type=click.Choice(sorted(SYNC_MODES)))
    def sync_mode_command(mode: str | None):
        controller = current_app.extensions["linksaver.sync_mode"]
        if mode is None or mode == controller.current_mode:
            click.echo(f"Sync mode: {controller.current_mode}")
            return
        # Release the active store's connections before merging out of it.
        db.session.remove()
        if not controller.set_cloud_sync_enabled(mode == SYNC_MODE_CLOUD):
            raise click.ClickException(
                f"Could not switch to {mode}; staying on {controller.current_mode}."
            )
        click.echo(f"Sync mode switched to {mode}; restart to use the new store.")

    @app.cli.command("fetch-metadata")
    @click.option("--limit", type=int, default=50, show_default=True)
    def fetch_metadata_command(limit: int):
        store = _active_store()
        assets = current_app.extensions["linksaver.assets"]
        pending = store.fetch_all(Link, Link.metadata_fetched.is_(False))[:limit]
        fetched = 0
        for link in pending:
            if fetch_and_update_metadata(
                link,
                assets,
                timeout=current_app.config["METADATA_FETCH_TIMEOUT"],
                max_bytes=current_app.config["METADATA_MAX_BYTES"],
            ):
                fetched += 1
        try:
            store.save()
        except StorageError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Fetched metadata for {fetched} of {len(pending)} links.")
