"""
User Repository

Users and the support network around them: buddy peers, community
co-members and the platform-wide pool.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mindmate.infrastructure.database.models.user_model import (
    BuddyPeerModel,
    CommunityMembershipModel,
    UserModel,
)
from mindmate.infrastructure.database.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserModel]):
    """
    Repository for users and their support network.

    All recipient lookups exclude the user themself.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(UserModel, session)

    async def create_user(self, username: str, display_name: Optional[str] = None) -> UserModel:
        return await self.create(UserModel(username=username, display_name=display_name))

    async def get_active_user_ids(self) -> list[UUID]:
        """Active users in creation order."""
        result = await self._session.execute(
            select(UserModel.id)
            .where(UserModel.is_active.is_(True))
            .order_by(UserModel.created_at, UserModel.id)
        )
        return list(result.scalars().all())

    async def add_buddy_pair(self, user_id: UUID, peer_id: UUID) -> None:
        """Make two users buddies (stored in both directions)."""
        self._session.add_all([
            BuddyPeerModel(user_id=user_id, peer_id=peer_id),
            BuddyPeerModel(user_id=peer_id, peer_id=user_id),
        ])
        await self._session.flush()

    async def join_community(self, user_id: UUID, community_id: UUID) -> None:
        self._session.add(CommunityMembershipModel(community_id=community_id, user_id=user_id))
        await self._session.flush()

    async def get_buddy_peer_ids(self, user_id: UUID) -> list[UUID]:
        result = await self._session.execute(
            select(BuddyPeerModel.peer_id)
            .where(BuddyPeerModel.user_id == user_id, BuddyPeerModel.peer_id != user_id)
            .order_by(BuddyPeerModel.created_at, BuddyPeerModel.peer_id)
        )
        return list(result.scalars().all())

    async def get_community_peer_ids(self, user_id: UUID) -> list[UUID]:
        """Users sharing at least one community with ``user_id``."""
        own_communities = (
            select(CommunityMembershipModel.community_id)
            .where(CommunityMembershipModel.user_id == user_id)
        )
        result = await self._session.execute(
            select(CommunityMembershipModel.user_id)
            .where(
                CommunityMembershipModel.community_id.in_(own_communities),
                CommunityMembershipModel.user_id != user_id,
            )
            .distinct()
            .order_by(CommunityMembershipModel.user_id)
        )
        return list(result.scalars().all())

    async def get_global_pool_ids(self, user_id: UUID, limit: int) -> list[UUID]:
        """Other active users, oldest accounts first, capped at ``limit``."""
        result = await self._session.execute(
            select(UserModel.id)
            .where(UserModel.is_active.is_(True), UserModel.id != user_id)
            .order_by(UserModel.created_at, UserModel.id)
            .limit(limit)
        )
        return list(result.scalars().all())
