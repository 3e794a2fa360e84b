"""Scheduled maintenance jobs."""

import logging

from gainz.config import settings
from gainz.db.session import session_scope
from gainz.repositories.credentials import SqlAlchemyCredentialStore
from gainz.services.tokens import TokenService

logger = logging.getLogger(__name__)


async def scheduled_token_cleanup() -> int:
    """Delete expired refresh/reset token rows. Never raises: this is background upkeep."""
    try:
        async with session_scope() as session:
            tokens = TokenService.from_settings(SqlAlchemyCredentialStore(session), settings)
            deleted = await tokens.cleanup_expired_tokens()
    except Exception as e:
        logger.error("Token cleanup job failed: %s", e)
        return 0
    return deleted
