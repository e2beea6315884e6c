import uuid

from linksaver.models import Folder, Link, Tag


def add_folder(store, name, **kwargs):
    folder = Folder(id=kwargs.pop("id", None) or uuid.uuid4(), name=name, **kwargs)
    store.insert(folder)
    return folder


def add_tag(store, name, **kwargs):
    tag = Tag(id=kwargs.pop("id", None) or uuid.uuid4(), name=name, **kwargs)
    store.insert(tag)
    return tag


def add_link(store, url, folder=None, tags=(), **kwargs):
    link = Link(
        id=kwargs.pop("id", None) or uuid.uuid4(),
        url=url,
        folder=folder,
        tags=list(tags),
        **kwargs,
    )
    store.insert(link)
    return link


def links_by_url(store):
    return {link.url: link for link in store.fetch_all(Link)}


def names(records):
    return sorted(record.name for record in records)
