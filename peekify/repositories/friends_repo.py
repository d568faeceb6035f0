import uuid
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import text
from sqlalchemy.orm import Session

from db.postgres_db import get_db_session, row_to_dict
from models.models import FRIEND_REQUEST_ACCEPTED, FRIEND_REQUEST_DECLINED, FRIEND_REQUEST_PENDING
from utils.time_utils import utc_now_iso

# Outcomes of FriendsRepository.open_request
OPEN_CREATED = "created"
OPEN_AUTO_ACCEPTED = "auto_accepted"
OPEN_ALREADY_FRIENDS = "already_friends"
OPEN_ALREADY_PENDING = "already_pending"
OPEN_ALREADY_ACCEPTED = "already_accepted"


def _lock_user_pair(session: Session, user_a: str, user_b: str) -> None:
    """Serialize writers on the unordered pair (user_a, user_b) until the transaction ends."""
    first, second = sorted((user_a, user_b))
    if session.get_bind().dialect.name == "postgresql":
        session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key));"),
            {"key": f"friends:{first}:{second}"},
        )
    else:
        # SQLite has a single writer; any write takes the database lock
        session.execute(
            text("UPDATE users SET updated_at_utc = updated_at_utc WHERE id = :id;"),
            {"id": first},
        )


def _insert_friend_pair(session: Session, user_a: str, user_b: str, now: str) -> None:
    """Write both directions of a friendship; an existing row is left as it is."""
    session.execute(
        text("""
            INSERT INTO friends(user_id, friend_id, created_at_utc)
            VALUES (:a, :b, :now), (:b, :a, :now)
            ON CONFLICT DO NOTHING;
        """),
        {"a": user_a, "b": user_b, "now": now},
    )


def _are_friends(session: Session, user_id: str, other_id: str) -> bool:
    row = session.execute(
        text("SELECT 1 FROM friends WHERE user_id = :user_id AND friend_id = :other_id LIMIT 1;"),
        {"user_id": user_id, "other_id": other_id},
    ).fetchone()
    return bool(row)


def _request_statuses(session: Session, sender_id: str, receiver_id: str) -> Set[str]:
    rows = session.execute(
        text("""
            SELECT DISTINCT status FROM friend_requests
            WHERE sender_id = :sender_id AND receiver_id = :receiver_id;
        """),
        {"sender_id": sender_id, "receiver_id": receiver_id},
    ).fetchall()
    return {str(row[0]) for row in rows}


def _insert_request(session: Session, sender_id: str, receiver_id: str, now: str) -> Dict[str, Any]:
    request_id = str(uuid.uuid4())
    session.execute(
        text("""
            INSERT INTO friend_requests(id, sender_id, receiver_id, status, created_at_utc, updated_at_utc)
            VALUES (:id, :sender_id, :receiver_id, :status, :now, :now);
        """),
        {
            "id": request_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "status": FRIEND_REQUEST_PENDING,
            "now": now,
        },
    )
    return {
        "id": request_id,
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "status": FRIEND_REQUEST_PENDING,
        "created_at_utc": now,
    }


def _claim_pending(session: Session, sender_id: str, receiver_id: str, now: str) -> Optional[str]:
    """Accept a pending sender_id -> receiver_id request and write the friendship."""
    request_id = session.execute(
        text("""
            SELECT id FROM friend_requests
            WHERE sender_id = :sender_id AND receiver_id = :receiver_id AND status = :pending
            LIMIT 1;
        """),
        {"sender_id": sender_id, "receiver_id": receiver_id, "pending": FRIEND_REQUEST_PENDING},
    ).scalar()
    if request_id is None:
        return None

    claimed = session.execute(
        text("""
            UPDATE friend_requests SET status = :accepted, updated_at_utc = :now
            WHERE id = :id AND status = :pending;
        """),
        {"accepted": FRIEND_REQUEST_ACCEPTED, "pending": FRIEND_REQUEST_PENDING, "now": now, "id": request_id},
    ).rowcount
    if not claimed:
        return None

    _insert_friend_pair(session, sender_id, receiver_id, now)
    return str(request_id)


class FriendsRepository:
    """Repository for friendships and the friend-request state machine."""

    def are_friends(self, user_id: str, other_id: str) -> bool:
        with get_db_session() as session:
            return _are_friends(session, user_id, other_id)

    def get_request_statuses(self, sender_id: str, receiver_id: str) -> Set[str]:
        """Statuses of every request sent from sender_id to receiver_id."""
        with get_db_session() as session:
            return _request_statuses(session, sender_id, receiver_id)

    def create_request(self, sender_id: str, receiver_id: str) -> Dict[str, Any]:
        """
        Insert a pending request.
        A second pending request for the same pair violates uq_friend_requests_pending_pair.
        """
        with get_db_session() as session:
            return _insert_request(session, sender_id, receiver_id, utc_now_iso())

    def accept_pending_from(self, sender_id: str, receiver_id: str) -> Optional[str]:
        """
        Accept a pending request sender_id -> receiver_id, if there is one, and
        create the friendship in the same transaction.

        Returns:
            The accepted request id, or None if no pending request was claimed
        """
        with get_db_session() as session:
            return _claim_pending(session, sender_id, receiver_id, utc_now_iso())

    def open_request(self, sender_id: str, receiver_id: str) -> Tuple[str, Dict[str, Any]]:
        """
        Send a request sender_id -> receiver_id, or accept the pending request
        going the other way. Checks, claim and insert share one transaction
        that holds the pair lock, so crossing requests end in one friendship.

        Returns:
            (outcome, data): OPEN_CREATED with the new request row,
            OPEN_AUTO_ACCEPTED with {"request_id": ...}, or one of the
            OPEN_ALREADY_* outcomes with {}
        """
        now = utc_now_iso()
        with get_db_session() as session:
            _lock_user_pair(session, sender_id, receiver_id)
            if _are_friends(session, sender_id, receiver_id):
                return OPEN_ALREADY_FRIENDS, {}

            statuses = _request_statuses(session, sender_id, receiver_id)
            if FRIEND_REQUEST_PENDING in statuses:
                return OPEN_ALREADY_PENDING, {}
            if FRIEND_REQUEST_ACCEPTED in statuses:
                return OPEN_ALREADY_ACCEPTED, {}

            reverse_id = _claim_pending(session, receiver_id, sender_id, now)
            if reverse_id:
                return OPEN_AUTO_ACCEPTED, {"request_id": reverse_id}
            return OPEN_CREATED, _insert_request(session, sender_id, receiver_id, now)

    def get_request(self, request_id: str) -> Optional[Dict[str, Any]]:
        with get_db_session() as session:
            row = session.execute(
                text("""
                    SELECT id, sender_id, receiver_id, status, created_at_utc, updated_at_utc
                    FROM friend_requests WHERE id = :id LIMIT 1;
                """),
                {"id": request_id},
            ).fetchone()
            return row_to_dict(row)

    def accept_request(self, request_id: str) -> bool:
        """
        Move a pending request to accepted and create the friendship.
        Returns False if the request was no longer pending.
        """
        now = utc_now_iso()
        with get_db_session() as session:
            row = session.execute(
                text("SELECT sender_id, receiver_id FROM friend_requests WHERE id = :id LIMIT 1;"),
                {"id": request_id},
            ).fetchone()
            if not row:
                return False

            claimed = session.execute(
                text("""
                    UPDATE friend_requests SET status = :accepted, updated_at_utc = :now
                    WHERE id = :id AND status = :pending;
                """),
                {"accepted": FRIEND_REQUEST_ACCEPTED, "pending": FRIEND_REQUEST_PENDING, "now": now, "id": request_id},
            ).rowcount
            if not claimed:
                return False

            _insert_friend_pair(session, str(row[0]), str(row[1]), now)
            return True

    def decline_request(self, request_id: str) -> bool:
        """Move a pending request to declined. Returns False if it was no longer pending."""
        with get_db_session() as session:
            result = session.execute(
                text("""
                    UPDATE friend_requests SET status = :declined, updated_at_utc = :now
                    WHERE id = :id AND status = :pending;
                """),
                {
                    "declined": FRIEND_REQUEST_DECLINED,
                    "pending": FRIEND_REQUEST_PENDING,
                    "now": utc_now_iso(),
                    "id": request_id,
                },
            )
            return result.rowcount > 0

    def remove_friendship(self, user_id: str, friend_id: str) -> int:
        """Delete both directions. Returns the number of rows removed."""
        with get_db_session() as session:
            result = session.execute(
                text("""
                    DELETE FROM friends
                    WHERE (user_id = :a AND friend_id = :b) OR (user_id = :b AND friend_id = :a);
                """),
                {"a": user_id, "b": friend_id},
            )
            return result.rowcount or 0

    def list_friends(self, user_id: str) -> List[Dict[str, Any]]:
        with get_db_session() as session:
            rows = session.execute(
                text("""
                    SELECT u.id, u.spotify_id, u.display_name, u.profile_picture_url, u.username, u.bio,
                           f.created_at_utc AS friendship_since
                    FROM friends f
                    JOIN users u ON f.friend_id = u.id
                    WHERE f.user_id = :user_id
                    ORDER BY f.created_at_utc DESC;
                """),
                {"user_id": user_id},
            ).fetchall()
            return [dict(row._mapping) for row in rows]

    def list_pending_received(self, user_id: str) -> List[Dict[str, Any]]:
        """Pending requests addressed to user_id, joined with the sender."""
        with get_db_session() as session:
            rows = session.execute(
                text("""
                    SELECT fr.id, fr.sender_id, fr.receiver_id, fr.status, fr.created_at_utc,
                           u.display_name, u.profile_picture_url, u.username, u.bio
                    FROM friend_requests fr
                    JOIN users u ON fr.sender_id = u.id
                    WHERE fr.receiver_id = :user_id AND fr.status = :pending
                    ORDER BY fr.created_at_utc DESC;
                """),
                {"user_id": user_id, "pending": FRIEND_REQUEST_PENDING},
            ).fetchall()
            return [dict(row._mapping) for row in rows]

    def list_pending_sent(self, user_id: str) -> List[Dict[str, Any]]:
        """Pending requests sent by user_id, joined with the receiver."""
        with get_db_session() as session:
            rows = session.execute(
                text("""
                    SELECT fr.id, fr.sender_id, fr.receiver_id, fr.status, fr.created_at_utc,
                           u.display_name, u.profile_picture_url, u.username, u.bio
                    FROM friend_requests fr
                    JOIN users u ON fr.receiver_id = u.id
                    WHERE fr.sender_id = :user_id AND fr.status = :pending
                    ORDER BY fr.created_at_utc DESC;
                """),
                {"user_id": user_id, "pending": FRIEND_REQUEST_PENDING},
            ).fetchall()
            return [dict(row._mapping) for row in rows]
