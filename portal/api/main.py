from fastapi import Depends, FastAPI, Request, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware
import logging

from .. import __version__
from ..auth.dependencies import LoginRequired, RoleForbidden, get_notification_hub
from ..auth.jwt_handler import JWTHandler
from ..auth.session import load_or_create_session
from ..client.errors import SessionExpiredError
from ..client.http import create_http_client
from ..config import (
    ALLOWED_ORIGINS, LOG_LEVEL, SESSION_COOKIE_NAME, SESSION_COOKIE_SECURE, SESSION_MAX_AGE_MINUTES,
)
from ..database.connection import DatabaseManager, SessionLocal, get_db
from ..realtime.notifications import NotificationHub, create_notification_hub
from .routes import admin, auth, client, notifications, public, shared, technician
from .templating import STATIC_DIR, redirect

# Configure logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize FastAPI app with metadata
app = FastAPI(
    title="Electriborne Portal",
    description="Web portal of the Electriborne field-service platform: marketing site, and admin, technician and client spaces backed by the Electriborne REST API.",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Public",
            "description": "Marketing site, quote requests and charging estimator"
        },
        {
            "name": "Authentication",
            "description": "Login, logout, registration and dashboard redirect"
        },
        {
            "name": "Administration",
            "description": "Admin dashboard, resource actions and site customization"
        },
        {
            "name": "Technician",
            "description": "Missions, quotes, reports and schedule of technicians"
        },
        {
            "name": "Client",
            "description": "Service requests, quotes, payments and invoices of clients"
        },
        {
            "name": "Profile & messages",
            "description": "Profile, password, notification settings and messaging"
        },
        {
            "name": "Notifications",
            "description": "Notification list and read state"
        },
        {
            "name": "Health",
            "description": "Service status"
        }
    ]
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SessionCookieMiddleware(BaseHTTPMiddleware):
    """Attach the cookie of a session first stored while handling the request."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        auth_session = getattr(request.state, "auth_session", None)
        if auth_session is not None and auth_session.needs_cookie:
            response.set_cookie(
                SESSION_COOKIE_NAME,
                JWTHandler.create_session_token(auth_session.id),
                max_age=SESSION_MAX_AGE_MINUTES * 60,
                httponly=True,
                secure=SESSION_COOKIE_SECURE,
                samesite="lax",
            )
        return response


app.add_middleware(SessionCookieMiddleware)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    return redirect("/login")


@app.exception_handler(RoleForbidden)
async def role_forbidden_handler(request: Request, exc: RoleForbidden):
    return redirect("/dashboard")


@app.exception_handler(SessionExpiredError)
async def session_expired_handler(request: Request, exc: SessionExpiredError):
    """The backend refused the token; the session is already anonymous."""
    return redirect("/login")


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize the database, the backend HTTP client and the notification hub."""
    logger.info("Starting up Electriborne Portal...")

    try:
        DatabaseManager.init_db()
        logger.info("Database initialized successfully")
        with SessionLocal() as db:
            DatabaseManager.purge_stale_sessions(db)
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    if getattr(app.state, "http_client", None) is None:
        app.state.http_client = create_http_client()
    if getattr(app.state, "notification_hub", None) is None:
        app.state.notification_hub = create_notification_hub()


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Close realtime channels and the backend HTTP client."""
    logger.info("Shutting down Electriborne Portal...")
    hub = getattr(app.state, "notification_hub", None)
    if hub is not None:
        await hub.shutdown()
    http_client = getattr(app.state, "http_client", None)
    if http_client is not None:
        await http_client.aclose()


@app.get("/health", tags=["Health"])
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint.

    Returns the portal status, checking the local session database.
    """
    try:
        db.execute(text("SELECT 1")).scalar()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service unhealthy - database connection failed"
        )
    return {
        "status": "healthy",
        "version": __version__,
        "database": "connected",
    }


app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

# Include routers
app.include_router(public.router)
app.include_router(auth.router)
app.include_router(admin.router)
for crud_router in admin.crud_routers:
    app.include_router(crud_router)
app.include_router(technician.router)
app.include_router(client.router)
app.include_router(shared.router)
app.include_router(notifications.router)


@app.websocket("/ws/notifications")
async def notifications_socket(
    websocket: WebSocket,
    db: Session = Depends(get_db),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """
    Live notifications of the logged-in user.

    The browser connects with its session cookie and receives each
    notification pushed to the user as JSON
    ({id, backendId, message, type, isRead, receivedAt}).
    Anonymous browsers are refused with close code 4401.
    """
    session_id = JWTHandler.verify_session_token(websocket.cookies.get(SESSION_COOKIE_NAME))
    auth_session = None
    if session_id is not None:
        auth_session, _ = load_or_create_session(db, session_id)
        if auth_session.expired_user_id:
            hub.release(auth_session.expired_user_id, auth_session.id)
    if auth_session is None or not auth_session.is_authenticated:
        await websocket.close(code=4401)
        return

    user_id = auth_session.user_id
    await websocket.accept()
    hub.subscribe(user_id, websocket)
    # the channel may be gone after a restart of the portal
    await hub.connect(user_id, auth_session.id)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Notification socket closed for user {user_id}")
    finally:
        hub.unsubscribe(user_id, websocket)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "portal.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
