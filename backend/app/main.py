import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from app.core.config import settings
from app.core.database import engine, Base
from app.core.rate_limit import limiter
from app.api.error_handlers import register_error_handlers
from app.api.routes import auth, stubs, webhooks
from app.services.clerk_client import ClerkClient

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_clerk_client() -> ClerkClient | None:
    """Clerk client from settings, or None when no secret key is configured"""
    if not settings.clerk_enabled:
        logger.warning("CLERK_SECRET_KEY not set: Clerk authentication disabled, local tokens only")
        return None
    return ClerkClient(
        secret_key=settings.CLERK_SECRET_KEY,
        api_url=settings.CLERK_API_URL,
        jwks_cache_ttl=settings.CLERK_JWKS_CACHE_TTL_SECONDS,
        timeout=settings.CLERK_TIMEOUT_SECONDS,
        authorized_parties=settings.get_clerk_authorized_parties(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create tables, build the shared Clerk client
    Shutdown: close the Clerk client's HTTP connections
    """
    # In production, use migrations (Alembic) instead of create_all
    Base.metadata.create_all(bind=engine)
    app.state.clerk_client = build_clerk_client()
    yield
    if app.state.clerk_client is not None:
        await app.state.clerk_client.close()


app = FastAPI(
    title="MidatoPay API",
    description="Merchant payment acceptance: identity, profile and (disabled) payment APIs",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = limiter
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# All routes are prefixed with /api
app.include_router(auth.router, prefix="/api")
app.include_router(webhooks.router, prefix="/api")
app.include_router(stubs.router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint - API information"""
    return {"message": "MidatoPay API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Health check endpoint - used by monitoring/deployment tools"""
    return {"status": "healthy", "clerk_enabled": settings.clerk_enabled}
