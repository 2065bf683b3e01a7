# storefront/main.py
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.api.v1.api import api_router
from storefront.core.config import Settings, get_settings
from storefront.core.errors import register_exception_handlers
from storefront.core.limiter import limiter
from storefront.db.session import make_engine, make_session_factory
from storefront.services.payment.provider_factory import PaymentProviderFactory

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"Storefront starting up (env={app.state.settings.ENV}, "
        f"providers={app.state.provider_factory.available_providers()})"
    )
    yield
    logger.info("Storefront shutting down")


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[Callable] = None,
    provider_factory: Optional[PaymentProviderFactory] = None,
) -> FastAPI:
    """
    Build the application. Collaborators are created here and exposed on
    ``app.state`` for the request dependencies in ``storefront.api.deps``.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Template Storefront",
        version="1.0.0",
        description="""
        Checkout, payment reconciliation and fulfillment for digital templates.

        ## Authentication

        Buyer endpoints require a JWT via the `Authorization: Bearer <token>` header.
        Admin endpoints additionally require the `admin` role claim.
        """,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_factory = session_factory or make_session_factory(
        make_engine(settings.DATABASE_URL)
    )
    app.state.provider_factory = provider_factory or PaymentProviderFactory(settings)
    app.state.limiter = limiter

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/")
    def read_root():
        return {"status": "Storefront is running"}

    return app


def _build_default_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)
    return create_app(settings)


app = _build_default_app()
