# backend/tutorbook/main.py
"""
Application factory for the tutorbook scheduling API.

Process-wide collaborators are created once here and hung on ``app.state``:
the payment guard (one per process), the payment provider and the
rate-limit store. Tests pass their own instances.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Optional, Sequence

from fastapi import APIRouter, FastAPI
from sqlalchemy.engine import Engine

from .core.config import settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION
from .core.logging import setup_logging
from .database import configure_engine, get_engine, init_db
from .errors import register_error_handlers
from .integrations.payment_provider import PaymentProvider, build_payment_provider
from .middleware.prometheus_middleware import PrometheusMiddleware
from .ratelimit.store import WindowStore, build_window_store
from .routes.v1 import availability as availability_v1
from .routes.v1 import health as health_v1
from .routes.v1 import payments as payments_v1
from .routes.v1 import sessions as sessions_v1
from .services.booking_service import PostCommitHook
from .services.payment_rate_limiter import PaymentRateLimiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("Starting %s (environment=%s)", API_TITLE, settings.environment)
    if app.state.create_schema:
        init_db(get_engine())
    yield
    logger.info("Shutting down %s", API_TITLE)


def create_app(
    *,
    engine: Optional[Engine] = None,
    payment_provider: Optional[PaymentProvider] = None,
    payment_rate_limiter: Optional[PaymentRateLimiter] = None,
    rate_limit_store: Optional[WindowStore] = None,
    post_commit_hooks: Optional[Sequence[PostCommitHook]] = None,
    create_schema: bool = True,
) -> FastAPI:
    if engine is not None:
        configure_engine(engine)

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        lifespan=app_lifespan,
    )
    app.state.create_schema = create_schema
    app.state.payment_rate_limiter = payment_rate_limiter or PaymentRateLimiter.from_settings(settings)
    app.state.payment_provider = payment_provider or build_payment_provider(settings)
    app.state.rate_limit_store = rate_limit_store or build_window_store(settings)
    app.state.post_commit_hooks = list(post_commit_hooks or [])

    register_error_handlers(app)
    app.add_middleware(PrometheusMiddleware)

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(availability_v1.router, prefix="/tutors")
    api_v1.include_router(sessions_v1.router, prefix="/sessions")
    api_v1.include_router(payments_v1.router, prefix="/sessions")
    app.include_router(api_v1)
    app.include_router(health_v1.router)

    return app
