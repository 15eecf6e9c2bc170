import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from loguru import logger

from app.api.activities.activities import router as activities_router
from app.api.admin.admin import router as admin_router
from app.api.auth.auth import router as auth_router
from app.api.auth.auth_google import router as auth_google_router
from app.api.auth.auth_strava import router as auth_strava_router
from app.api.chat.chat import router as chat_router
from app.api.dashboard.dashboard import router as dashboard_router
from app.api.debug.debug import router as debug_router
from app.api.health.health import router as health_router
from app.api.webhooks.webhooks import router as webhooks_router
from app.config.settings import settings
from app.core.logger import setup_logger
from app.core.security import get_security_headers
from app.db.session import get_session, init_db
from app.services.auth_service import purge_expired_sessions

# Initialize logger
setup_logger(level=settings.log_level, log_file=settings.log_file or None)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Create tables and drop expired sessions on startup.

    Note: FastAPI requires async for lifespan context manager,
    even if no await operations are used.
    """
    logger.info("Ensuring database tables exist")
    init_db()
    try:
        with get_session() as session:
            purge_expired_sessions(session)
    except Exception as e:
        logger.error(f"Expired session cleanup failed (non-fatal): {e}")

    await asyncio.sleep(0)
    yield
    logger.info("Application shutdown")


app = FastAPI(title="Strava Activity Insights", lifespan=lifespan)

app.include_router(auth_router)
app.include_router(auth_strava_router)
app.include_router(auth_google_router)
app.include_router(activities_router)
app.include_router(dashboard_router)
app.include_router(chat_router)
app.include_router(admin_router)
app.include_router(webhooks_router)
app.include_router(health_router)
app.include_router(debug_router)

logger.info("FastAPI application initialized")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests."""
    logger.debug(f"Request: {request.method} {request.url.path}")
    response = await call_next(request)
    logger.debug(f"Response: {response.status_code} for {request.method} {request.url.path}")
    return response


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in get_security_headers().items():
        response.headers.setdefault(name, value)
    return response


@app.get("/", response_class=HTMLResponse)
def root():
    return """
    <html>
        <head>
            <title>Strava Activity Insights</title>
        </head>
        <body>
            <h1>Strava Activity Insights</h1>
            <p>Import your Strava activities and get AI-generated training insights</p>
            <h2>Available Endpoints:</h2>
            <ul>
                <li><a href="/docs">API Documentation (Swagger)</a></li>
                <li><a href="/redoc">API Documentation (ReDoc)</a></li>
                <li><a href="/health">Health Check</a></li>
            </ul>
        </body>
    </html>
    """
