import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from slowapi.errors import RateLimitExceeded

from app.api import agents, assistant, knowledge, queries, reports, scenarios
from app.config import get_settings
from app.db.database import init_db
from app.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from app.services.report_service import WEASYPRINT_AVAILABLE
from app.utils.async_utils import create_task_with_error_handling

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

settings = get_settings()

# Sentry must be initialized before the app object exists
if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=1.0 if settings.debug else 0.2,
        send_default_pii=False,
    )
    logger.info(f"Sentry initialized for environment: {settings.sentry_environment}")


def provider_status() -> dict[str, bool]:
    """Which external tiers are live; anything False degrades to the next tier."""
    return {
        "generative": settings.generative_provider_configured,
        "embeddings": bool(settings.openai_api_key),
        "web_search": settings.search_provider_configured,
        "social": settings.social_provider_configured,
        "cloud_storage": bool(settings.supabase_url and settings.supabase_service_key),
        "pdf": settings.render_pdf and WEASYPRINT_AVAILABLE,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name}...")
    degraded = [name for name, live in provider_status().items() if not live]
    if degraded:
        logger.info(f"Running with fallbacks for: {', '.join(degraded)}")

    # Schema creation runs in the background so a slow database does not block startup
    async def init_database():
        try:
            await init_db()
            logger.info("Database tables initialized.")
        except Exception as e:
            logger.warning(f"Database initialization failed: {e}")
            logger.warning("Query submission will fail until the database is reachable")

    create_task_with_error_handling(init_database(), task_name="database_init")

    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Market Research API",
    description=(
        "Research queries fanned out to sentiment, competitor and trend agents, "
        "aggregated into executive reports, with knowledge search and a research assistant"
    ),
    version="0.3.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

cors_origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
logger.info(f"CORS Origins configured: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Accept", "Content-Type", "Origin", "X-Requested-With", "X-User-Id"],
    expose_headers=["Content-Disposition", "Retry-After"],
    max_age=600,
)

app.include_router(queries.router, prefix="/api/queries", tags=["Queries"])
app.include_router(scenarios.router, prefix="/api/queries", tags=["Scenarios"])
app.include_router(agents.router, prefix="/api/agents", tags=["Agents"])
app.include_router(knowledge.router, prefix="/api/knowledge", tags=["Knowledge"])
app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])
app.include_router(assistant.router, prefix="/api/assistant", tags=["Assistant"])


@app.get("/", tags=["Health"])
@app.get("/health", tags=["Health"])
@app.get("/api/health", tags=["Health"])
async def health_check():
    """Liveness plus which provider tiers are configured."""
    return {"status": "healthy", "app": settings.app_name, "providers": provider_status()}
