import uuid
from datetime import datetime, timezone
from urllib.parse import urlsplit

from linksaver.extensions import db


DEFAULT_FOLDER_ICON = "folder"
DEFAULT_TAG_COLOR = "#007AFF"

DEFAULT_TAG_COLORS = [
    "#007AFF",  # blue
    "#34C759",  # green
    "#FF9500",  # orange
    "#FF3B30",  # red
    "#AF52DE",  # purple
    "#FF2D55",  # pink
    "#5856D6",  # indigo
    "#00C7BE",  # teal
    "#FFD60A",  # yellow
    "#8E8E93",  # gray
]

_HEX_DIGITS = set("0123456789abcdefABCDEF")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_color_hex(value: str | None) -> tuple[float, float, float, float] | None:
    """Parse ``#RRGGBB`` or ``#RRGGBBAA`` into 0..1 floats, or ``None``."""
    text = (value or "").strip().replace("#", "")
    if len(text) not in {6, 8} or not set(text) <= _HEX_DIGITS:
        return None

    rgb = int(text, 16)
    if len(text) == 6:
        return (
            ((rgb >> 16) & 0xFF) / 255.0,
            ((rgb >> 8) & 0xFF) / 255.0,
            (rgb & 0xFF) / 255.0,
            1.0,
        )
    return (
        ((rgb >> 24) & 0xFF) / 255.0,
        ((rgb >> 16) & 0xFF) / 255.0,
        ((rgb >> 8) & 0xFF) / 255.0,
        (rgb & 0xFF) / 255.0,
    )


link_tags = db.Table(
    "link_tags",
    db.Column(
        "link_id",
        db.Uuid,
        db.ForeignKey("links.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "tag_id",
        db.Uuid,
        db.ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Folder(db.Model):
    __tablename__ = "folders"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255), nullable=False)
    icon_name = db.Column(db.String(64), nullable=False, default=DEFAULT_FOLDER_ICON)
    date_created = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    links = db.relationship("Link", back_populates="folder")

    @property
    def link_count(self) -> int:
        return len(self.links)


class Tag(db.Model):
    __tablename__ = "tags"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255), nullable=False)
    color_hex = db.Column(db.String(16), nullable=False, default=DEFAULT_TAG_COLOR)
    date_created = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    links = db.relationship("Link", secondary=link_tags, back_populates="tags")

    @property
    def link_count(self) -> int:
        return len(self.links)

    @property
    def rgba(self) -> tuple[float, float, float, float]:
        return parse_color_hex(self.color_hex) or parse_color_hex(DEFAULT_TAG_COLOR)


class Link(db.Model):
    __tablename__ = "links"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    url = db.Column(db.Text, nullable=False)
    date_added = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    title = db.Column(db.String(512), nullable=True)
    link_description = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    favicon = db.Column(db.LargeBinary, nullable=True)
    preview_image = db.Column(db.LargeBinary, nullable=True)

    is_favorite = db.Column(db.Boolean, nullable=False, default=False)
    is_pinned = db.Column(db.Boolean, nullable=False, default=False)
    folder_id = db.Column(
        db.Uuid,
        db.ForeignKey("folders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    metadata_fetched = db.Column(db.Boolean, nullable=False, default=False)
    last_metadata_fetch_attempt = db.Column(db.DateTime(timezone=True), nullable=True)

    folder = db.relationship("Folder", back_populates="links")
    tags = db.relationship("Tag", secondary=link_tags, back_populates="links")

    @property
    def display_title(self) -> str:
        return self.title or self.url

    @property
    def domain(self) -> str | None:
        try:
            return urlsplit(self.url or "").hostname
        except ValueError:
            return None
