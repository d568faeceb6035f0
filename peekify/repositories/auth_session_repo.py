"""
Repository for managing authentication sessions.
Sessions are persisted so they survive restarts and are shared between workers.
"""

import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy import text

from db.postgres_db import get_db_session
from models.models import AuthSession
from utils.logger import get_logger
from utils.time_utils import dt_from_utc_iso, dt_to_utc_iso, utc_now

logger = get_logger(__name__)


class AuthSessionRepository:
    """Database-backed repository for authentication sessions."""

    def create_session(self, user_id: str, expires_in_days: int = 7) -> AuthSession:
        """
        Create a new authentication session.

        Args:
            user_id: Internal user ID
            expires_in_days: Number of days until expiration (default: 7)

        Returns:
            Created AuthSession
        """
        session_token = secrets.token_urlsafe(32)
        now = utc_now()
        expires_at = now + timedelta(days=expires_in_days)

        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO auth_sessions(session_token, user_id, created_at_utc, expires_at_utc)
                    VALUES (:session_token, :user_id, :created_at_utc, :expires_at_utc);
                """),
                {
                    "session_token": session_token,
                    "user_id": user_id,
                    "created_at_utc": dt_to_utc_iso(now),
                    "expires_at_utc": dt_to_utc_iso(expires_at),
                },
            )

        logger.debug(f"Created auth session for user {user_id}, expires at {expires_at}")
        return AuthSession(
            session_token=session_token,
            user_id=user_id,
            created_at=now,
            expires_at=expires_at,
        )

    def get_session(self, session_token: str) -> Optional[AuthSession]:
        """
        Get a session by token.

        Returns:
            AuthSession if found and not expired, None otherwise
        """
        if not session_token:
            return None

        with get_db_session() as db:
            row = db.execute(
                text("""
                    SELECT session_token, user_id, created_at_utc, expires_at_utc
                    FROM auth_sessions WHERE session_token = :session_token LIMIT 1;
                """),
                {"session_token": session_token},
            ).fetchone()

            if not row:
                return None

            expires_at = dt_from_utc_iso(row[3])
            if not expires_at or utc_now() > expires_at:
                db.execute(
                    text("DELETE FROM auth_sessions WHERE session_token = :session_token;"),
                    {"session_token": session_token},
                )
                logger.debug(f"Session for user {row[1]} expired and removed")
                return None

            return AuthSession(
                session_token=str(row[0]),
                user_id=str(row[1]),
                created_at=dt_from_utc_iso(row[2]),
                expires_at=expires_at,
            )

    def delete_session(self, session_token: str) -> bool:
        with get_db_session() as db:
            result = db.execute(
                text("DELETE FROM auth_sessions WHERE session_token = :session_token;"),
                {"session_token": session_token},
            )
            return result.rowcount > 0

    def cleanup_expired(self) -> int:
        """
        Remove all expired sessions.

        Returns:
            Number of sessions removed
        """
        with get_db_session() as db:
            result = db.execute(
                text("DELETE FROM auth_sessions WHERE expires_at_utc < :now;"),
                {"now": dt_to_utc_iso(utc_now())},
            )
            removed = result.rowcount or 0

        if removed:
            logger.info(f"Cleaned up {removed} expired auth sessions")
        return removed
