import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import text

from db.postgres_db import get_db_session, row_to_dict
from models.models import SpotifyTokens
from utils.time_utils import dt_from_utc_iso, dt_to_utc_iso, utc_now_iso

PROFILE_COLUMNS = """
    id, spotify_id, email, display_name, profile_picture_url, username, bio,
    privacy_level, timezone, notification_time, created_at_utc
"""

PUBLIC_COLUMNS = "id, display_name, profile_picture_url, username, bio, privacy_level, created_at_utc"

# Profile fields a user may change, mapped to their column.
UPDATABLE_COLUMNS = {
    "display_name": "display_name",
    "email": "email",
    "username": "username",
    "bio": "bio",
    "privacy_level": "privacy_level",
    "timezone": "timezone",
    "notification_time": "notification_time",
}


def _escape_like(term: str) -> str:
    """Make % and _ in term match literally under ESCAPE '\\'."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class UsersRepository:
    """Repository for users, their profiles and their Spotify credentials."""

    def upsert_spotify_user(
        self,
        spotify_id: str,
        display_name: Optional[str],
        email: Optional[str],
        profile_picture_url: Optional[str],
        access_token: str,
        refresh_token: Optional[str],
        expires_at: datetime,
    ) -> Dict[str, Any]:
        """
        Create the user on first login, or refresh their tokens on later logins.
        Profile fields the user already set are left alone.
        """
        now = utc_now_iso()
        with get_db_session() as session:
            session.execute(
                text("""
                    INSERT INTO users(
                        id, spotify_id, email, display_name, profile_picture_url,
                        spotify_access_token, spotify_refresh_token, spotify_token_expires_at_utc,
                        created_at_utc, updated_at_utc
                    ) VALUES (
                        :id, :spotify_id, :email, :display_name, :profile_picture_url,
                        :access_token, :refresh_token, :expires_at, :now, :now
                    )
                    ON CONFLICT (spotify_id) DO UPDATE SET
                        spotify_access_token = excluded.spotify_access_token,
                        spotify_refresh_token = COALESCE(excluded.spotify_refresh_token, users.spotify_refresh_token),
                        spotify_token_expires_at_utc = excluded.spotify_token_expires_at_utc,
                        email = COALESCE(users.email, excluded.email),
                        display_name = COALESCE(users.display_name, excluded.display_name),
                        profile_picture_url = COALESCE(users.profile_picture_url, excluded.profile_picture_url),
                        updated_at_utc = excluded.updated_at_utc;
                """),
                {
                    "id": str(uuid.uuid4()),
                    "spotify_id": spotify_id,
                    "email": email,
                    "display_name": display_name,
                    "profile_picture_url": profile_picture_url,
                    "access_token": access_token,
                    "refresh_token": refresh_token,
                    "expires_at": dt_to_utc_iso(expires_at),
                    "now": now,
                },
            )
            row = session.execute(
                text(f"SELECT {PROFILE_COLUMNS} FROM users WHERE spotify_id = :spotify_id LIMIT 1;"),
                {"spotify_id": spotify_id},
            ).fetchone()
            return row_to_dict(row)

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Full profile of a user (for the user themselves)."""
        with get_db_session() as session:
            row = session.execute(
                text(f"SELECT {PROFILE_COLUMNS} FROM users WHERE id = :user_id LIMIT 1;"),
                {"user_id": user_id},
            ).fetchone()
            return row_to_dict(row)

    def get_public_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        with get_db_session() as session:
            row = session.execute(
                text(f"SELECT {PUBLIC_COLUMNS} FROM users WHERE id = :user_id LIMIT 1;"),
                {"user_id": user_id},
            ).fetchone()
            return row_to_dict(row)

    def user_exists(self, user_id: str) -> bool:
        with get_db_session() as session:
            row = session.execute(
                text("SELECT 1 FROM users WHERE id = :user_id LIMIT 1;"),
                {"user_id": user_id},
            ).fetchone()
            return bool(row)

    def is_username_taken(self, username: str, exclude_user_id: Optional[str] = None) -> bool:
        with get_db_session() as session:
            row = session.execute(
                text("""
                    SELECT 1 FROM users
                    WHERE LOWER(username) = LOWER(:username) AND id <> :exclude
                    LIMIT 1;
                """),
                {"username": username, "exclude": exclude_user_id or ""},
            ).fetchone()
            return bool(row)

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Write the given profile fields and return the updated profile.
        Keys must come from UPDATABLE_COLUMNS.
        """
        unknown = set(fields) - set(UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown profile fields: {', '.join(sorted(unknown))}")

        assignments = ", ".join(f"{UPDATABLE_COLUMNS[name]} = :{name}" for name in fields)
        params = dict(fields)
        params["user_id"] = user_id
        params["updated_at_utc"] = utc_now_iso()
        with get_db_session() as session:
            session.execute(
                text(f"UPDATE users SET {assignments}, updated_at_utc = :updated_at_utc WHERE id = :user_id;"),
                params,
            )
            row = session.execute(
                text(f"SELECT {PROFILE_COLUMNS} FROM users WHERE id = :user_id LIMIT 1;"),
                {"user_id": user_id},
            ).fetchone()
            return row_to_dict(row)

    def set_profile_picture(self, user_id: str, url: str) -> bool:
        with get_db_session() as session:
            result = session.execute(
                text("""
                    UPDATE users SET profile_picture_url = :url, updated_at_utc = :now
                    WHERE id = :user_id;
                """),
                {"url": url, "now": utc_now_iso(), "user_id": user_id},
            )
            return result.rowcount > 0

    def search_users(self, term: str, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Case-insensitive search on username and display name.
        Ranked: exact username, exact display name, username prefix,
        display-name prefix, anything else; then by username.
        """
        pattern = _escape_like(term)
        with get_db_session() as session:
            rows = session.execute(
                text("""
                    SELECT id, display_name, profile_picture_url, username, bio
                    FROM users
                    WHERE LOWER(username) LIKE LOWER(:contains) ESCAPE '\\'
                        OR LOWER(display_name) LIKE LOWER(:contains) ESCAPE '\\'
                    ORDER BY
                        CASE
                            WHEN LOWER(username) = LOWER(:exact) THEN 1
                            WHEN LOWER(display_name) = LOWER(:exact) THEN 2
                            WHEN LOWER(username) LIKE LOWER(:prefix) ESCAPE '\\' THEN 3
                            WHEN LOWER(display_name) LIKE LOWER(:prefix) ESCAPE '\\' THEN 4
                            ELSE 5
                        END,
                        username ASC
                    LIMIT :limit;
                """),
                {
                    "contains": f"%{pattern}%",
                    "exact": term,
                    "prefix": f"{pattern}%",
                    "limit": limit,
                },
            ).fetchall()
            return [dict(row._mapping) for row in rows]

    def get_spotify_tokens(self, user_id: str) -> Optional[SpotifyTokens]:
        with get_db_session() as session:
            row = session.execute(
                text("""
                    SELECT spotify_access_token, spotify_refresh_token, spotify_token_expires_at_utc
                    FROM users WHERE id = :user_id LIMIT 1;
                """),
                {"user_id": user_id},
            ).fetchone()

        if not row:
            return None
        return SpotifyTokens(
            user_id=user_id,
            access_token=row[0],
            refresh_token=row[1],
            expires_at=dt_from_utc_iso(row[2]),
        )

    def save_spotify_tokens(
        self,
        user_id: str,
        access_token: str,
        expires_at: datetime,
        refresh_token: Optional[str] = None,
    ) -> None:
        """Store a refreshed access token; the refresh token is only replaced when the provider rotated it."""
        with get_db_session() as session:
            session.execute(
                text("""
                    UPDATE users
                    SET spotify_access_token = :access_token,
                        spotify_token_expires_at_utc = :expires_at,
                        spotify_refresh_token = COALESCE(:refresh_token, spotify_refresh_token),
                        updated_at_utc = :now
                    WHERE id = :user_id;
                """),
                {
                    "access_token": access_token,
                    "expires_at": dt_to_utc_iso(expires_at),
                    "refresh_token": refresh_token,
                    "now": utc_now_iso(),
                    "user_id": user_id,
                },
            )

    def list_connected_user_ids(self) -> List[str]:
        """Users who have a Spotify refresh token (history can be synced for them)."""
        with get_db_session() as session:
            rows = session.execute(
                text("""
                    SELECT id FROM users
                    WHERE spotify_refresh_token IS NOT NULL
                    ORDER BY created_at_utc ASC;
                """),
            ).fetchall()
            return [str(row[0]) for row in rows]

    def list_reveal_settings(self) -> List[Dict[str, Any]]:
        """id, timezone and notification_time of every user."""
        with get_db_session() as session:
            rows = session.execute(
                text("SELECT id, timezone, notification_time FROM users ORDER BY created_at_utc ASC;"),
            ).fetchall()
            return [dict(row._mapping) for row in rows]

    def get_timezone(self, user_id: str) -> str:
        with get_db_session() as session:
            tz = session.execute(
                text("SELECT timezone FROM users WHERE id = :user_id LIMIT 1;"),
                {"user_id": user_id},
            ).scalar()
            return str(tz or "UTC")

    def mark_synced(self, user_id: str) -> None:
        with get_db_session() as session:
            session.execute(
                text("UPDATE users SET last_synced_at_utc = :now WHERE id = :user_id;"),
                {"now": utc_now_iso(), "user_id": user_id},
            )
