"""Session store - opaque sign-in tokens."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from ..errors import AuthError, NotFoundError
from ..schemas import TokenRecord
from ..utils.clock import utcnow
from ..utils.security import random_id
from .storage import TOKENS, PersistenceGateway

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL_SECONDS = 3600


class SessionStore:
    """Maps tokens to users until they expire or are invalidated."""

    def __init__(self, gateway: PersistenceGateway, ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS):
        self.gateway = gateway
        self.ttl = timedelta(seconds=ttl_seconds)

    async def create(self, user_id: str, now: Optional[datetime] = None) -> TokenRecord:
        """Issue a new token for ``user_id``."""
        now = now or utcnow()
        token = TokenRecord(id=random_id(), user_id=user_id, expires_at=now + self.ttl)
        await self.gateway.put(TOKENS, token.id, token.model_dump())
        logger.info(f"Session started for user {user_id}")
        return token

    async def get(self, token_id: str) -> TokenRecord:
        record = await self.gateway.get(TOKENS, token_id)
        if record is None:
            raise NotFoundError("Token not found")
        return TokenRecord.model_validate(record)

    async def validate(self, token_id: Optional[str], now: Optional[datetime] = None) -> Optional[str]:
        """Return the user id for a live token, or None.

        Expired tokens are deleted on sight.
        """
        if not token_id:
            return None
        now = now or utcnow()
        record = await self.gateway.get(TOKENS, token_id)
        if record is None:
            return None
        token = TokenRecord.model_validate(record)
        if token.expires_at <= now:
            await self.gateway.delete(TOKENS, token_id)
            return None
        return token.user_id

    async def extend(self, token_id: str, now: Optional[datetime] = None) -> TokenRecord:
        """Push the expiry of a live token forward by one TTL."""
        now = now or utcnow()
        token = await self.get(token_id)
        if token.expires_at <= now:
            raise AuthError("Token has already expired and cannot be extended")
        token = token.model_copy(update={"expires_at": now + self.ttl})
        await self.gateway.put(TOKENS, token.id, token.model_dump())
        return token

    async def invalidate(self, token_id: str):
        """Delete a token (sign-out). Deleted tokens are never reissued."""
        await self.gateway.delete(TOKENS, token_id)

    async def invalidate_user(self, user_id: str) -> int:
        """Delete every token belonging to ``user_id``."""
        count = 0
        for record in await self.gateway.find_by(TOKENS, "user_id", user_id):
            await self.gateway.delete(TOKENS, record["id"])
            count += 1
        return count

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete all expired tokens; returns how many were removed."""
        now = now or utcnow()
        count = 0
        for record in await self.gateway.list_all(TOKENS):
            token = TokenRecord.model_validate(record)
            if token.expires_at <= now:
                await self.gateway.delete(TOKENS, token.id)
                count += 1
        return count
