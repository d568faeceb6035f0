"""
Web API for the Peekify frontend: REST routes, realtime socket, media files.
"""

from webapp.api import create_webapp_api

__all__ = ["create_webapp_api"]
