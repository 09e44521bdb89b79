"""
Support Network

Resolves who is asked for help at each tier, and whose requests a
helper may see.

    buddy      the user's buddy peers
    community  users sharing at least one community with the user
    global     every other active user (capped for fan-out)
"""

from uuid import UUID

from mindmate.domain.enums import SupportTier
from mindmate.infrastructure.database.connection import DatabaseManager
from mindmate.infrastructure.database.repositories import UserRepository


class SupportNetwork:
    """Read-only view over buddy pairs and community memberships."""

    def __init__(self, db: DatabaseManager, global_pool_limit: int = 50) -> None:
        self._db = db
        self._global_pool_limit = global_pool_limit

    async def recipients(self, tier: SupportTier, user_id: UUID) -> list[UUID]:
        """People to notify when ``user_id`` needs help at ``tier``."""
        async with self._db.session() as session:
            users = UserRepository(session)
            if tier == SupportTier.BUDDY:
                return await users.get_buddy_peer_ids(user_id)
            if tier == SupportTier.COMMUNITY:
                return await users.get_community_peer_ids(user_id)
            return await users.get_global_pool_ids(user_id, self._global_pool_limit)

    async def eligible_requesters(self, tier: SupportTier, helper_id: UUID) -> list[UUID]:
        """
        Users whose ``tier`` requests ``helper_id`` may answer.

        Buddy and community relations are symmetric, so this is the
        helper's own buddy or community peer set.
        """
        async with self._db.session() as session:
            users = UserRepository(session)
            if tier == SupportTier.BUDDY:
                return await users.get_buddy_peer_ids(helper_id)
            if tier == SupportTier.COMMUNITY:
                return await users.get_community_peer_ids(helper_id)
            return [uid for uid in await users.get_active_user_ids() if uid != helper_id]
