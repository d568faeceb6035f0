import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import text

from db.postgres_db import get_db_session
from utils.time_utils import utc_now_iso


class PushSubscriptionsRepository:
    """Web Push subscriptions, one row per browser endpoint."""

    def upsert_subscription(self, user_id: str, endpoint: str, p256dh: str, auth: str) -> None:
        """Store a subscription. An endpoint seen before is moved to user_id with the new keys."""
        with get_db_session() as session:
            session.execute(
                text("""
                    INSERT INTO push_subscriptions(id, user_id, endpoint, p256dh, auth, created_at_utc)
                    VALUES (:id, :user_id, :endpoint, :p256dh, :auth, :created_at_utc)
                    ON CONFLICT (endpoint) DO UPDATE SET
                        user_id = excluded.user_id,
                        p256dh = excluded.p256dh,
                        auth = excluded.auth;
                """),
                {
                    "id": str(uuid.uuid4()),
                    "user_id": user_id,
                    "endpoint": endpoint,
                    "p256dh": p256dh,
                    "auth": auth,
                    "created_at_utc": utc_now_iso(),
                },
            )

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        with get_db_session() as session:
            rows = session.execute(
                text("""
                    SELECT endpoint, p256dh, auth FROM push_subscriptions
                    WHERE user_id = :user_id ORDER BY created_at_utc ASC;
                """),
                {"user_id": user_id},
            ).fetchall()
            return [dict(row._mapping) for row in rows]

    def delete_subscription(self, user_id: str, endpoint: Optional[str] = None) -> int:
        """Delete one endpoint of the user, or all of them when endpoint is None."""
        query = "DELETE FROM push_subscriptions WHERE user_id = :user_id"
        if endpoint:
            query += " AND endpoint = :endpoint"
        with get_db_session() as session:
            result = session.execute(text(query + ";"), {"user_id": user_id, "endpoint": endpoint})
            return result.rowcount or 0

    def delete_endpoint(self, endpoint: str) -> None:
        """Drop an endpoint the push service reported as gone."""
        with get_db_session() as session:
            session.execute(
                text("DELETE FROM push_subscriptions WHERE endpoint = :endpoint;"),
                {"endpoint": endpoint},
            )
