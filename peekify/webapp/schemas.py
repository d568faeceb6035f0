"""
Pydantic models for API request bodies.

Fields the handlers validate themselves are Optional here, so a missing
value reaches the service and gets its specific error message.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# Auth
class AuthCallbackRequest(BaseModel):
    """Authorization code returned by Spotify to the frontend's callback page."""
    code: Optional[str] = None
    state: Optional[str] = None


# Feed
class CreateFeedItemRequest(BaseModel):
    type: Optional[str] = None
    content: Optional[Any] = None


class AddCommentRequest(BaseModel):
    content: Optional[str] = None


class AddReactionRequest(BaseModel):
    emoji: Optional[str] = None


# Friends
class FriendRequestCreate(_CamelModel):
    user_id: Optional[str] = Field(default=None, alias="userId")


class FriendRequestAction(_CamelModel):
    request_id: Optional[str] = Field(default=None, alias="requestId")


# Spotify
class QueueTrackRequest(BaseModel):
    uri: str


class PlayTrackRequest(_CamelModel):
    uri: str
    device_id: Optional[str] = Field(default=None, alias="deviceId")


# Push notifications
class PushKeys(BaseModel):
    p256dh: str
    auth: str


class PushSubscribeRequest(BaseModel):
    endpoint: str
    keys: PushKeys


class PushUnsubscribeRequest(BaseModel):
    endpoint: Optional[str] = None
