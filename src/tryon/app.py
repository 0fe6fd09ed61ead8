"""FastAPI application factory."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tryon.api.routes import credits, generations
from tryon.core import timezone  # noqa: F401
from tryon.core.config import Settings, configure_logging
from tryon.core.database import setup_db_session
from tryon.services.auth import SupabaseAuthVerifier
from tryon.services.generation import GenerationPipeline
from tryon.services.generation.orphans import reap_orphaned_generations
from tryon.services.providers.replicate_gateway import ReplicateGateway
from tryon.services.storage import SupabaseStorage
from tryon.uow import create_uow_factory

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Startup: configure logging, build the session factory and the pipeline
    collaborators, then fail any generation orphaned by a previous process.
    """
    settings = Settings()  # type: ignore[call-arg]
    configure_logging(settings)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    uow_factory = create_uow_factory(session_factory)

    gateway = ReplicateGateway(
        api_token=settings.replicate_api_token,
        image_model=settings.image_model,
        text_model=settings.prompt_optimizer_model,
        advisor_model=settings.advisor_model,
        http_timeout=settings.http_timeout_seconds,
    )
    storage = SupabaseStorage(
        base_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
        images_bucket=settings.generated_images_bucket,
        thumbnails_bucket=settings.thumbnails_bucket,
        timeout=settings.http_timeout_seconds,
    )

    app.state.session_factory = session_factory
    app.state.uow_factory = uow_factory
    app.state.pipeline = GenerationPipeline(uow_factory, gateway, storage, settings)
    app.state.auth_verifier = SupabaseAuthVerifier(
        settings.supabase_url, settings.supabase_anon_key or settings.supabase_service_role_key
    )

    try:
        await reap_orphaned_generations(uow_factory, settings.orphan_timeout_minutes)
    except SQLAlchemyError as e:
        # The API can still serve requests; the CLI can reap later
        logger.error("startup.orphan_reap_failed", error=str(e), error_type=type(e).__name__)

    logger.info("application.startup", db_url=settings.database_url.split("@")[-1])

    yield

    logger.info("application.shutdown")
    await session_factory.kw["bind"].dispose()


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="Try-On Generation API",
        description="Virtual try-on image generation with prepaid credits",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(generations.router)
    app.include_router(credits.router)

    @app.get("/health")
    async def health_check(response: Response):
        """Health check endpoint with database connectivity test.

        Returns:
            200: {"status": "healthy"} if database connection succeeds
            503: {"status": "unhealthy", "error": {...}} if database connection fails
        """
        try:
            async with app.state.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()

            logger.debug("health_check.success")
            return {"status": "healthy"}

        except Exception as e:
            logger.error(
                "health_check.failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {
                "status": "unhealthy",
                "error": {
                    "type": type(e).__name__,
                    "message": str(e),
                },
            }

    return app


# Create app instance for uvicorn
app = create_app()
