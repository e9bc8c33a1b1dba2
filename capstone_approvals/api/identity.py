"""Caller identity for the HTTP API.

Credentials are verified upstream; the identity provider forwards the
authenticated caller's integer user id in ``Settings.identity_header``.
"""

import logging

from fastapi import Depends, HTTPException, Request, status

from capstone_approvals.config import Settings, get_settings

logger = logging.getLogger(__name__)


def get_settings_dep() -> Settings:
    """Settings dependency (overridable in tests)."""
    return get_settings()


def _parse_user_id(raw: str | None) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        user_id = int(raw.strip())
    except ValueError:
        return None
    return user_id if user_id > 0 else None


async def get_current_user_id(
    request: Request,
    settings: Settings = Depends(get_settings_dep),
) -> int:
    """Resolve the authenticated caller id.

    Raises:
        HTTPException: 401 if the identity header is missing or malformed
    """
    user_id = _parse_user_id(request.headers.get(settings.identity_header))
    if user_id is None:
        logger.info(
            "Request without a valid caller identity",
            extra={"path": request.url.path},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthenticated.",
        )
    return user_id


async def get_optional_user_id(
    request: Request,
    settings: Settings = Depends(get_settings_dep),
) -> int | None:
    """Resolve the caller id if one was supplied, otherwise None."""
    return _parse_user_id(request.headers.get(settings.identity_header))


__all__ = ["get_settings_dep", "get_current_user_id", "get_optional_user_id"]
