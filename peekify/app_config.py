"""
Runtime configuration, read from environment variables.

The server entry point loads a .env file first (python-dotenv), so every
setting below can live there during local development.
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_SPOTIFY_SCOPES = (
    "user-read-email user-read-private user-read-recently-played "
    "user-read-playback-state user-modify-playback-state user-read-currently-playing"
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class AppConfig:
    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_redirect_uri: str = "http://localhost:3001/auth/callback"
    spotify_scopes: str = DEFAULT_SPOTIFY_SCOPES
    frontend_urls: List[str] = field(default_factory=lambda: ["http://localhost:3001"])
    public_base_url: str = "http://localhost:3000"
    media_dir: str = "/tmp/peekify_media"
    session_days: int = 7
    vapid_private_key: Optional[str] = None
    vapid_public_key: Optional[str] = None
    vapid_subject: str = "mailto:admin@peekify.app"
    history_sync_interval_minutes: int = 30
    enable_scheduler: bool = True
    host: str = "0.0.0.0"
    port: int = 3000
    sentry_dsn: Optional[str] = None
    environment: str = "development"


def load_config() -> AppConfig:
    """Build AppConfig from the current environment."""
    frontend = os.getenv("FRONTEND_URL", "http://localhost:3001")
    return AppConfig(
        spotify_client_id=os.getenv("SPOTIFY_CLIENT_ID", ""),
        spotify_client_secret=os.getenv("SPOTIFY_CLIENT_SECRET", ""),
        spotify_redirect_uri=os.getenv("SPOTIFY_REDIRECT_URI", "http://localhost:3001/auth/callback"),
        spotify_scopes=os.getenv("SPOTIFY_SCOPES", DEFAULT_SPOTIFY_SCOPES),
        frontend_urls=[u.strip() for u in frontend.split(",") if u.strip()],
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:3000").rstrip("/"),
        media_dir=os.getenv("MEDIA_DIR", "/tmp/peekify_media"),
        session_days=_env_int("SESSION_DAYS", 7),
        vapid_private_key=os.getenv("VAPID_PRIVATE_KEY") or None,
        vapid_public_key=os.getenv("VAPID_PUBLIC_KEY") or None,
        vapid_subject=os.getenv("VAPID_SUBJECT", "mailto:admin@peekify.app"),
        history_sync_interval_minutes=_env_int("HISTORY_SYNC_INTERVAL_MINUTES", 30),
        enable_scheduler=_env_bool("ENABLE_SCHEDULER", True),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 3000),
        sentry_dsn=os.getenv("SENTRY_DSN") or None,
        environment=os.getenv("ENVIRONMENT", "development").lower(),
    )
