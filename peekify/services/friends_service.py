"""
Friend requests and friendships.

A request moves pending -> accepted or pending -> declined, never back.
Accepting writes the friendship in both directions in the same transaction
as the status change.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from db.postgres_db import is_unique_violation
from models.models import FRIEND_REQUEST_ACCEPTED, FRIEND_REQUEST_DECLINED
from repositories.friends_repo import (
    OPEN_ALREADY_ACCEPTED,
    OPEN_ALREADY_FRIENDS,
    OPEN_ALREADY_PENDING,
    OPEN_AUTO_ACCEPTED,
    FriendsRepository,
)
from repositories.users_repo import UsersRepository
from services.notification_dispatcher import NotificationDispatcher
from utils.errors import BadRequestError, ForbiddenError, NotFoundError
from utils.logger import get_logger

logger = get_logger(__name__)

REQUEST_TYPES = ("received", "sent")


def _format_person(row: Dict[str, Any], id_key: str) -> Dict[str, Any]:
    return {
        "id": row[id_key],
        "displayName": row.get("display_name"),
        "profilePictureUrl": row.get("profile_picture_url"),
        "username": row.get("username"),
        "bio": row.get("bio"),
    }


class FriendsService:
    def __init__(
        self,
        friends_repo: FriendsRepository,
        users_repo: UsersRepository,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.friends_repo = friends_repo
        self.users_repo = users_repo
        self.dispatcher = dispatcher

    def _display_name(self, user_id: str) -> str:
        profile = self.users_repo.get_public_profile(user_id) or {}
        return profile.get("display_name") or profile.get("username") or "Someone"

    def _notify(self, user_id: str, title: str, body: str, data: Dict[str, Any]) -> None:
        if self.dispatcher:
            self.dispatcher.notify(user_id, title=title, body=body, data=data)

    def send_request(self, sender_id: str, receiver_id: Optional[str]) -> Dict[str, Any]:
        """
        Send a friend request, or accept the receiver's pending request to the sender.

        Returns {"autoAccepted": True, "friendship": {...}} when an opposite
        request was pending, else {"autoAccepted": False, "friendRequest": {...}}.
        """
        if not receiver_id:
            raise BadRequestError("Receiver user ID is required")
        if sender_id == receiver_id:
            raise BadRequestError("Cannot send friend request to yourself")
        if not self.users_repo.user_exists(receiver_id):
            raise NotFoundError("User not found")

        try:
            outcome, data = self.friends_repo.open_request(sender_id, receiver_id)
        except IntegrityError as e:
            if is_unique_violation(e):
                raise BadRequestError("Friend request already sent") from e
            raise

        if outcome == OPEN_ALREADY_FRIENDS:
            raise BadRequestError("Already friends with this user")
        if outcome == OPEN_ALREADY_PENDING:
            raise BadRequestError("Friend request already sent")
        if outcome == OPEN_ALREADY_ACCEPTED:
            raise BadRequestError("Friend request already accepted")

        if outcome == OPEN_AUTO_ACCEPTED:
            logger.info(f"Auto-accepted friend request from reverse request: {data['request_id']}")
            self._notify(
                receiver_id,
                title="Friend request accepted",
                body=f"{self._display_name(sender_id)} is now your friend",
                data={"type": "friend_accepted", "userId": sender_id},
            )
            return {
                "autoAccepted": True,
                "message": "Friend request auto-accepted (reverse request existed)",
                "friendship": {"userId": sender_id, "friendId": receiver_id},
            }

        request = data
        logger.info(f"Friend request sent: {request['id']}")
        self._notify(
            receiver_id,
            title="New friend request",
            body=f"{self._display_name(sender_id)} wants to be your friend",
            data={"type": "friend_request", "requestId": request["id"]},
        )
        return {
            "autoAccepted": False,
            "friendRequest": {
                "id": request["id"],
                "senderId": request["sender_id"],
                "receiverId": request["receiver_id"],
                "status": request["status"],
                "createdAt": request["created_at_utc"],
            },
        }

    def _load_request_for_receiver(self, request_id: Optional[str], user_id: str, verb: str) -> Dict[str, Any]:
        if not request_id:
            raise BadRequestError("Request ID is required")
        request = self.friends_repo.get_request(request_id)
        if not request:
            raise NotFoundError("Friend request not found")
        if request["receiver_id"] != user_id:
            raise ForbiddenError(f"You can only {verb} requests sent to you")
        return request

    def accept_request(self, request_id: Optional[str], user_id: str) -> Dict[str, Any]:
        request = self._load_request_for_receiver(request_id, user_id, "accept")
        if request["status"] == FRIEND_REQUEST_ACCEPTED:
            raise BadRequestError("Friend request already accepted")
        if request["status"] == FRIEND_REQUEST_DECLINED:
            raise BadRequestError("Cannot accept a declined friend request")

        if not self.friends_repo.accept_request(request_id):
            # Lost a race with another accept/decline of the same request
            current = self.friends_repo.get_request(request_id) or {}
            if current.get("status") == FRIEND_REQUEST_DECLINED:
                raise BadRequestError("Cannot accept a declined friend request")
            raise BadRequestError("Friend request already accepted")

        logger.info(f"Friend request accepted: {request_id}")
        self._notify(
            request["sender_id"],
            title="Friend request accepted",
            body=f"{self._display_name(user_id)} accepted your friend request",
            data={"type": "friend_accepted", "userId": user_id},
        )
        return {"friendship": {"userId": request["receiver_id"], "friendId": request["sender_id"]}}

    def decline_request(self, request_id: Optional[str], user_id: str) -> None:
        request = self._load_request_for_receiver(request_id, user_id, "decline")
        if request["status"] == FRIEND_REQUEST_DECLINED:
            raise BadRequestError("Friend request already declined")
        if request["status"] == FRIEND_REQUEST_ACCEPTED:
            raise BadRequestError("Cannot decline an accepted friend request")

        if not self.friends_repo.decline_request(request_id):
            current = self.friends_repo.get_request(request_id) or {}
            if current.get("status") == FRIEND_REQUEST_ACCEPTED:
                raise BadRequestError("Cannot decline an accepted friend request")
            raise BadRequestError("Friend request already declined")
        logger.info(f"Friend request declined: {request_id}")

    def remove_friend(self, user_id: str, friend_id: str) -> None:
        """Remove both directions of the friendship. Past requests are left as they are."""
        if not friend_id:
            raise BadRequestError("Friend ID is required")
        if not self.friends_repo.remove_friendship(user_id, friend_id):
            raise NotFoundError("Friendship not found")
        logger.info(f"Friendship removed between {user_id} and {friend_id}")

    def get_friends(self, user_id: str) -> Dict[str, Any]:
        friends = [
            {
                "id": row["id"],
                "spotifyId": row.get("spotify_id"),
                "displayName": row.get("display_name"),
                "profilePictureUrl": row.get("profile_picture_url"),
                "username": row.get("username"),
                "bio": row.get("bio"),
                "friendshipSince": row["friendship_since"],
            }
            for row in self.friends_repo.list_friends(user_id)
        ]
        return {"friends": friends, "count": len(friends)}

    def get_friend_requests(self, user_id: str, request_type: Optional[str] = None) -> Dict[str, Any]:
        """Pending requests; request_type "received" or "sent" limits to one side."""
        if request_type and request_type not in REQUEST_TYPES:
            raise BadRequestError("Type must be 'received' or 'sent'")

        received: List[Dict[str, Any]] = []
        sent: List[Dict[str, Any]] = []
        if request_type in (None, "", "received"):
            received = [
                {
                    "id": row["id"],
                    "type": "received",
                    "status": row["status"],
                    "createdAt": row["created_at_utc"],
                    "sender": _format_person(row, "sender_id"),
                }
                for row in self.friends_repo.list_pending_received(user_id)
            ]
        if request_type in (None, "", "sent"):
            sent = [
                {
                    "id": row["id"],
                    "type": "sent",
                    "status": row["status"],
                    "createdAt": row["created_at_utc"],
                    "receiver": _format_person(row, "receiver_id"),
                }
                for row in self.friends_repo.list_pending_sent(user_id)
            ]

        return {
            "requests": {"received": received, "sent": sent},
            "count": {"received": len(received), "sent": len(sent), "total": len(received) + len(sent)},
        }
