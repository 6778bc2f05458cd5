"""
FastAPI Dependencies

Common dependencies for authentication and service access.
"""

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import APIKeyHeader

from simonkey.config import settings
from simonkey.services.progress.engine import ProgressEngine

# API Key header scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(
    api_key: str | None = Depends(api_key_header),
    x_api_key_query: str | None = Header(None, alias="api_key"),
) -> str:
    """
    Verify the API key from header or query parameter.

    If API_KEY is not configured in settings (empty string),
    authentication is disabled (development mode).

    Raises:
        HTTPException: 401 if API key is missing or invalid
    """
    if not settings.API_KEY:
        return "dev-mode"

    provided_key = api_key or x_api_key_query

    if not provided_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if provided_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return provided_key


def get_engine(request: Request) -> ProgressEngine:
    """The process's ProgressEngine, built in the app lifespan."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress engine not initialized",
        )
    return engine


# Dependency that can be used in routers
RequireAPIKey = Depends(verify_api_key)
