"""
FastAPI application for the Peekify backend.
Wires repositories, services and background workers into app.state and
registers the REST, WebSocket and media routes.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from app_config import AppConfig, load_config
from clients.spotify_client import SpotifyClient
from infra.scheduler import create_scheduler
from repositories.auth_session_repo import AuthSessionRepository
from repositories.comments_repo import CommentsRepository
from repositories.feed_repo import FeedRepository
from repositories.friends_repo import FriendsRepository
from repositories.history_repo import HistoryRepository
from repositories.push_subscriptions_repo import PushSubscriptionsRepository
from repositories.reactions_repo import ReactionsRepository
from repositories.users_repo import UsersRepository
from services.avatar_service import AvatarService
from services.daily_reveal import DailyRevealService
from services.feed_service import FeedService
from services.friends_service import FriendsService
from services.history_service import HistoryService
from services.notification_dispatcher import NotificationDispatcher
from services.profile_service import ProfileService
from services.push_service import PushService
from services.spotify_auth import SpotifyAuthService
from utils.errors import AppError
from utils.logger import get_logger
from webapp.realtime import ConnectionManager
from webapp.routers import auth, comments, feed, friends, health, history, notifications, spotify, users, ws

logger = get_logger(__name__)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    ctx_error = (first.get("ctx") or {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as {"success": false, "message": ...}."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_response(400, _validation_message(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return _error_response(500, "Internal server error")


def create_webapp_api(config: Optional[AppConfig] = None, start_background: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Runtime settings (read from the environment when omitted)
        start_background: Start the notification worker and the scheduler in the lifespan

    Returns:
        Configured FastAPI application
    """
    config = config or load_config()

    connection_manager = ConnectionManager()
    spotify_client = SpotifyClient(config.spotify_client_id, config.spotify_client_secret)

    users_repo = UsersRepository()
    auth_session_repo = AuthSessionRepository()
    feed_repo = FeedRepository()
    comments_repo = CommentsRepository()
    reactions_repo = ReactionsRepository()
    friends_repo = FriendsRepository()
    history_repo = HistoryRepository()
    push_subscriptions_repo = PushSubscriptionsRepository()

    push_service = PushService(push_subscriptions_repo, config.vapid_private_key, config.vapid_subject)
    dispatcher = NotificationDispatcher(
        broadcaster=connection_manager,
        push_service=push_service if push_service.enabled else None,
    )

    auth_service = SpotifyAuthService(config, spotify_client, users_repo, auth_session_repo)
    feed_service = FeedService(feed_repo, comments_repo, reactions_repo, users_repo, dispatcher)
    friends_service = FriendsService(friends_repo, users_repo, dispatcher)
    history_service = HistoryService(history_repo, users_repo, spotify_client, auth_service)
    reveal_service = DailyRevealService(users_repo, feed_repo, feed_service, history_service, dispatcher)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if start_background:
            await dispatcher.start()
            if config.enable_scheduler:
                scheduler = create_scheduler(
                    history_service,
                    reveal_service,
                    auth_session_repo,
                    sync_interval_minutes=config.history_sync_interval_minutes,
                )
                scheduler.start()
                logger.info("Background scheduler started")
        yield
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        await dispatcher.stop()

    app = FastAPI(
        title="Peekify API",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.frontend_urls,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.connection_manager = connection_manager
    app.state.dispatcher = dispatcher
    app.state.spotify_client = spotify_client
    app.state.users_repo = users_repo
    app.state.auth_session_repo = auth_session_repo
    app.state.push_subscriptions_repo = push_subscriptions_repo
    app.state.auth_service = auth_service
    app.state.feed_service = feed_service
    app.state.friends_service = friends_service
    app.state.history_service = history_service
    app.state.profile_service = ProfileService(users_repo)
    app.state.avatar_service = AvatarService(config.media_dir, config.public_base_url, users_repo)
    app.state.reveal_service = reveal_service

    register_exception_handlers(app)

    for module in (health, auth, users, feed, comments, friends, history, spotify, notifications, ws):
        app.include_router(module.router)

    # media_dir exists: AvatarService creates media_dir/avatars on init
    app.mount("/media", StaticFiles(directory=config.media_dir), name="media")

    return app
