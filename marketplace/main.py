"""Main entry point for the request-for-offer marketplace API."""

from dotenv import load_dotenv
load_dotenv()  # Load .env into environment variables

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.api.errors import register_exception_handlers
from marketplace.api.middleware import RequestLoggingMiddleware
from marketplace.api.routes.addresses import router as addresses_router
from marketplace.api.routes.ai import router as ai_router
from marketplace.api.routes.auth import router as auth_router
from marketplace.api.routes.negotiations import router as negotiations_router
from marketplace.api.routes.offers import router as offers_router
from marketplace.api.routes.payments import router as payments_router
from marketplace.api.routes.product_requests import router as product_requests_router
from marketplace.api.routes.users import router as users_router
from marketplace.config.settings import settings
from marketplace.db.base import init_db
from marketplace.db import models as db_models  # noqa: F401 - Import to register models with Base
from marketplace.logging import configure_production_logging

configure_production_logging()

logger = structlog.get_logger()

app = FastAPI(title="Request Marketplace API")

app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

for router in (
    auth_router,
    users_router,
    product_requests_router,
    offers_router,
    negotiations_router,
    payments_router,
    addresses_router,
    ai_router,
):
    app.include_router(router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


@app.on_event("startup")
async def startup_event():
    """Create tables on application startup."""
    await init_db()
    logger.info(
        "Database initialized on startup",
        is_postgres=settings.is_postgres,
        environment=settings.environment,
    )


def main():
    logger.info("Starting API server", host=settings.api_host, port=settings.api_port)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level="info")


if __name__ == "__main__":
    main()
