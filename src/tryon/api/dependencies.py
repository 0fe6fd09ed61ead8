"""FastAPI dependencies shared by the API routes.

Collaborators (unit of work factory, generation pipeline, token verifier) are
created in the application lifespan and stored on ``app.state``; tests inject
their own instances the same way.
"""

from typing import Annotated, Callable
from uuid import UUID

import structlog
from fastapi import Header, HTTPException, Request, status

from tryon.core.config import Settings
from tryon.services.exceptions import AuthServiceError
from tryon.services.generation import GenerationPipeline
from tryon.uow import UnitOfWork

logger = structlog.get_logger()


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings instance loaded from environment variables.
    """
    return Settings()  # type: ignore[call-arg]  # Pydantic loads from env vars


def get_uow_factory(request: Request) -> Callable[[], UnitOfWork]:
    """Get UnitOfWork factory from app state.

    Example:
        >>> @router.get("/endpoint")
        >>> async def endpoint(uow_factory=Depends(get_uow_factory)):
        ...     async with await uow_factory() as uow:
        ...         await uow.generations.get_by_id(generation_id)
    """
    return request.app.state.uow_factory


def get_pipeline(request: Request) -> GenerationPipeline:
    return request.app.state.pipeline


async def get_current_user_id(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> UUID:
    """Resolve the bearer token in the Authorization header to a user id.

    Raises:
        HTTPException: 401 if the header is missing or the token is rejected,
            503 if the auth service cannot be reached
    """
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    token = authorization[len("bearer ") :].strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    try:
        user_id = await request.app.state.auth_verifier.verify(token)
    except AuthServiceError as e:
        logger.error("auth.verification_unavailable", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service unavailable",
        )

    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user_id
