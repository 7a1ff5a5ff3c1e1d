import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

from photobridge.errors import ValidationError

# === PATH CONFIGURATION ===
CONFIG_FILE = Path("sync_config.json")

# === SCOPES ===
SCOPES = [
    "https://www.googleapis.com/auth/photoslibrary",
]

# === API LIMITS ===
# mediaItems:batchCreate and albums:batchAddMediaItems accept at most 50 items.
BATCH_SIZE = 50
ALBUM_PAGE_SIZE = 50
MEDIA_PAGE_SIZE = 100

PHOTOS_API_URL = "https://photoslibrary.googleapis.com/v1"
SOURCE_SITE_URL = "https://photo.lookmee.jp/site"
SOURCE_API_URL = SOURCE_SITE_URL + "/api"
SOURCE_SESSION_COOKIE = "_lookmee_photo_session"

# Environment variable -> SyncConfig field
ENV_VARS = {
    "LOOKMEE_ORGANIZATION_ID": "organization_id",
    "LOOKMEE_TOKEN": "source_token",
    "LOOKMEE_SALES_ID": "source_account_id",
    "LOOKMEE_GROUP_IDS": "group_ids",
    "GOOGLE_CLIENT_ID": "google_client_id",
    "GOOGLE_CLIENT_SECRET": "google_client_secret",
    "GOOGLE_REFRESH_TOKEN": "google_refresh_token",
    "DEFAULT_EXCLUDE_ALBUM": "default_exclude_album",
    "PHOTOBRIDGE_ALBUM_PREFIX": "album_prefix",
    "PHOTOBRIDGE_CHUNK_SIZE": "chunk_size",
    "PHOTOBRIDGE_MAX_RETRIES": "max_retries",
    "PHOTOBRIDGE_BACKOFF_BASE": "backoff_base",
    "PHOTOBRIDGE_LOG_LEVEL": "log_level",
    "PHOTOBRIDGE_LOG_FILE": "log_file",
}

INT_FIELDS = {"organization_id", "source_account_id", "chunk_size", "max_retries"}
FLOAT_FIELDS = {"backoff_base"}
BOOL_FIELDS = {"json_logs"}
INT_LIST_FIELDS = {"group_ids"}


@dataclass
class SyncConfig:
    """
    Everything one run needs, passed explicitly to the orchestrator and clients.
    """
    organization_id: Optional[int] = None
    source_token: Optional[str] = None
    source_account_id: Optional[int] = None
    group_ids: List[int] = field(default_factory=list)
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_refresh_token: Optional[str] = None
    default_exclude_album: str = ""
    album_prefix: str = "lookmee"
    chunk_size: int = BATCH_SIZE
    max_retries: int = 5
    backoff_base: float = 1.0
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: Optional[str] = None

    def validate(self):
        if not 1 <= self.chunk_size <= BATCH_SIZE:
            raise ValidationError(f"chunk_size must be between 1 and {BATCH_SIZE}, got {self.chunk_size}")
        if self.max_retries < 0:
            raise ValidationError(f"max_retries must not be negative, got {self.max_retries}")
        if self.backoff_base < 0:
            raise ValidationError(f"backoff_base must not be negative, got {self.backoff_base}")
        return self

    def require_google(self):
        missing = [
            name for name in ("google_client_id", "google_client_secret", "google_refresh_token")
            if not getattr(self, name)
        ]
        if missing:
            raise ValidationError("Google credentials are not configured: " + ", ".join(missing))

    def require_source(self):
        if not self.organization_id:
            raise ValidationError("organization_id is not configured")


def _coerce(name: str, value):
    if value is None:
        return [] if name in INT_LIST_FIELDS else None
    try:
        if name in INT_FIELDS:
            return int(value)
        if name in FLOAT_FIELDS:
            return float(value)
        if name in INT_LIST_FIELDS:
            if isinstance(value, str):
                value = [v for v in value.split(",") if v.strip()]
            return [int(v) for v in value]
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid value for {name}: {value!r}")
    if name in BOOL_FIELDS and isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return value


def load_config(path: Optional[Path] = None, environ=None) -> SyncConfig:
    """
    Load sync_config.json (if present) and overlay environment variables.
    Environment wins over the file. Unknown keys in the file are rejected.
    """
    path = Path(path) if path else CONFIG_FILE
    environ = os.environ if environ is None else environ
    known = {f.name for f in fields(SyncConfig)}
    values = {}

    if path.exists():
        with open(path, "r") as f:
            data = json.load(f)
        unknown = set(data) - known
        if unknown:
            raise ValidationError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")
        values.update(data)

    for env_name, field_name in ENV_VARS.items():
        if environ.get(env_name):
            values[field_name] = environ[env_name]

    values = {name: _coerce(name, value) for name, value in values.items()}
    return SyncConfig(**values).validate()
