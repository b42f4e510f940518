"""
Authenticated-user dependency.

Tokens are issued elsewhere (login is not part of this service); requests
carry them as ``Authorization: Bearer <token>``.
"""

import logging
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quickbite.database import get_db
from quickbite.errors import AuthenticationError
from quickbite.models import User

logger = logging.getLogger(__name__)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the calling user or fail with 401."""
    token = _bearer_token(authorization)
    if token is None:
        raise AuthenticationError("Please login to continue.")

    result = await db.execute(select(User).where(User.api_token == token))
    user = result.scalar_one_or_none()
    if user is None:
        logger.warning("Rejected request with unknown API token")
        raise AuthenticationError("Your session has expired. Please login again.")
    return user
