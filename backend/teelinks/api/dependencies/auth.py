"""Shared-secret guard for mutating catalog routes."""

from __future__ import annotations

import hmac
import logging

from fastapi import Depends, Header

from teelinks.api.dependencies.services import get_app_settings
from teelinks.core.config import Settings
from teelinks.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)

ADMIN_HEADER = "x-admin-secret-key"
UNAUTHORIZED_MESSAGE = "Unauthorized: Access is denied."


def is_admin_allowed(
    configured_secret: str | None,
    provided_secret: str | None,
    allow_open: bool = False,
) -> bool:
    """Decide whether a request carrying ``provided_secret`` may mutate the catalog."""
    if not configured_secret:
        if allow_open:
            logger.warning(
                "Admin authentication is disabled because ADMIN_SECRET_KEY is not set."
            )
            return True
        return False
    if provided_secret is None:
        return False
    return hmac.compare_digest(
        provided_secret.encode("utf-8"), configured_secret.encode("utf-8")
    )


def require_admin(
    x_admin_secret_key: str | None = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """FastAPI dependency rejecting requests without the configured admin secret."""
    if not is_admin_allowed(
        settings.admin_secret_key, x_admin_secret_key, settings.allow_open_admin
    ):
        logger.warning(
            "Unauthorized attempt to access admin route. Missing or incorrect secret key."
        )
        raise UnauthorizedError(UNAUTHORIZED_MESSAGE)
