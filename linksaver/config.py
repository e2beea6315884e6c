import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    LOCAL_DATABASE_URI = os.environ.get(
        "LOCAL_DATABASE_URL", f"sqlite:///{BASE_DIR / 'linksaver.db'}"
    )
    CLOUD_DATABASE_URI = os.environ.get(
        "CLOUD_DATABASE_URL", f"sqlite:///{BASE_DIR / 'linksaver-cloud.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ASSET_DIR = os.environ.get("LINK_ASSET_DIR", str(BASE_DIR / "LinkAssets"))
    PREFERENCES_PATH = os.environ.get(
        "LINKSAVER_PREFERENCES", str(BASE_DIR / "preferences.json")
    )
    METADATA_FETCH_TIMEOUT = float(os.environ.get("METADATA_FETCH_TIMEOUT", "15"))
    METADATA_MAX_BYTES = int(os.environ.get("METADATA_MAX_BYTES", "2500000"))
    BACKUP_MIN_INTERVAL_SECONDS = float(
        os.environ.get("BACKUP_MIN_INTERVAL_SECONDS", "8")
    )


class TestConfig(Config):
    TESTING = True
    LOCAL_DATABASE_URI = "sqlite:///:memory:"
    CLOUD_DATABASE_URI = "sqlite:///:memory:"
    ASSET_DIR = None
    PREFERENCES_PATH = None
    BACKUP_MIN_INTERVAL_SECONDS = 0
