from flask import Flask

from linksaver.cli import register_cli
from linksaver.config import Config
from linksaver.extensions import db
from linksaver.preferences import Preferences
from linksaver.services.assets import LinkAssetStore
from linksaver.services.sync_mode import (
    SYNC_MODE_CLOUD,
    SYNC_MODE_LOCAL,
    SyncModeController,
)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    preferences = Preferences(app.config.get("PREFERENCES_PATH"))
    sync_mode = SyncModeController(
        preferences,
        {
            SYNC_MODE_LOCAL: app.config["LOCAL_DATABASE_URI"],
            SYNC_MODE_CLOUD: app.config["CLOUD_DATABASE_URI"],
        },
    )
    app.config["SQLALCHEMY_DATABASE_URI"] = sync_mode.store_uri()

    db.init_app(app)
    app.extensions["linksaver.preferences"] = preferences
    app.extensions["linksaver.sync_mode"] = sync_mode
    app.extensions["linksaver.assets"] = LinkAssetStore(app.config.get("ASSET_DIR"))

    register_cli(app)

    with app.app_context():
        db.create_all()

    return app
