"""Middleware: API key authentication and analyzer error mapping."""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from imageanalyzer.config import Settings
    from imageanalyzer.errors import AnalyzerError

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


async def verify_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> None:
    """Require 'Authorization: Bearer <key>' when IMAGEANALYZER_API_KEY is set."""
    settings: Settings = request.app.state.settings
    expected = settings.api_key
    if expected is None:
        return

    supplied = credentials.credentials if credentials is not None else ""
    if not secrets.compare_digest(supplied.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def analyzer_error_handler(request: Request, exc: AnalyzerError) -> JSONResponse:
    """Render a domain error as ``{"detail": ..., "code": ...}``."""
    logger.info("%s %s -> %s (%s)", request.method, request.url.path, exc.http_status, exc.code)
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.message, "code": exc.code.value},
    )
