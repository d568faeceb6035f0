"""
API routers for the webapp.
"""

from . import health, auth, users, feed, comments, friends, history, spotify, notifications, ws

__all__ = ["health", "auth", "users", "feed", "comments", "friends", "history", "spotify", "notifications", "ws"]
