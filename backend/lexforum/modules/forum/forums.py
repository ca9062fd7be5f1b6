"""
Forum Manager - forum lifecycle and audience rules.
"""

from dataclasses import dataclass
from typing import Any

from loguru import logger
from sqlalchemy import Select, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lexforum.core.config import settings
from lexforum.core.database import utcnow
from lexforum.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from lexforum.core.security import CallerContext
from lexforum.models.forum import Forum, ForumCategory, ForumThread, ForumType
from lexforum.modules.forum.cascade import purge_threads
from lexforum.modules.forum.common import require_text
from lexforum.modules.forum.permissions import (
    can_access_forum,
    can_manage_forum,
    forum_scope,
)


@dataclass
class ForumStats:
    """Entity counts for one forum."""

    forum_id: int
    category_count: int
    thread_count: int


def parse_forum_type(value: ForumType | str) -> ForumType:
    try:
        return ForumType(value)
    except ValueError:
        allowed = ", ".join(member.value for member in ForumType)
        raise ValidationError(f"type must be one of: {allowed}")


class ForumManager:
    """
    Creates, updates and deletes forums and answers audience questions.

    Usage:
        forums = ForumManager(db_session)
        visible = await forums.list_forums(caller)
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize forum manager with database session."""
        self.db = db

    # ==================== Access ====================

    def can_manage_forum(self, caller: CallerContext, forum: Forum) -> bool:
        return can_manage_forum(caller, forum_scope(forum))

    def can_access_forum(self, caller: CallerContext, forum: Forum) -> bool:
        return can_access_forum(caller, forum_scope(forum))

    def require_access(self, caller: CallerContext, forum: Forum) -> None:
        if not self.can_access_forum(caller, forum):
            raise AuthorizationError("You are not a member of this forum")

    def require_manage(self, caller: CallerContext, forum: Forum) -> None:
        if not self.can_manage_forum(caller, forum):
            raise AuthorizationError("You are not allowed to manage this forum")

    # ==================== Lookups ====================

    def _forum_query(self) -> Select:
        return (
            select(Forum)
            .options(selectinload(Forum.creator))
            .execution_options(populate_existing=True)
        )

    async def get_forum_or_404(self, forum_id: int) -> Forum:
        """Load forum with its creator or raise NotFoundError."""
        result = await self.db.execute(self._forum_query().where(Forum.id == forum_id))
        forum = result.scalar_one_or_none()
        if not forum:
            raise NotFoundError(f"Forum {forum_id} not found")
        return forum

    async def get_forum(self, caller: CallerContext, forum_id: int) -> Forum:
        """Get forum visible to the caller."""
        forum = await self.get_forum_or_404(forum_id)
        self.require_access(caller, forum)
        return forum

    async def list_forums(self, caller: CallerContext) -> list[Forum]:
        """All lawyer-advice forums plus the caller's organizational forums."""
        visibility = Forum.type == ForumType.LAWYER_ADVICE
        if caller.organization_id is not None:
            visibility = or_(
                visibility,
                (Forum.type == ForumType.ORGANIZATIONAL)
                & (Forum.organization_id == caller.organization_id),
            )

        query = (
            self._forum_query()
            .where(visibility)
            .order_by(Forum.created_at.desc(), Forum.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_forum_stats(self, caller: CallerContext, forum_id: int) -> ForumStats:
        """Category and thread counts for a forum."""
        forum = await self.get_forum(caller, forum_id)

        category_count = await self.db.scalar(
            select(func.count())
            .select_from(ForumCategory)
            .where(ForumCategory.forum_id == forum.id)
        )
        thread_count = await self.db.scalar(
            select(func.count())
            .select_from(ForumThread)
            .where(ForumThread.forum_id == forum.id)
        )
        return ForumStats(
            forum_id=forum.id,
            category_count=category_count or 0,
            thread_count=thread_count or 0,
        )

    # ==================== Mutations ====================

    async def create_forum(
        self,
        caller: CallerContext,
        name: str,
        forum_type: ForumType | str,
        description: str | None = None,
        forum_settings: dict[str, Any] | None = None,
    ) -> Forum:
        """
        Create new forum.

        Args:
            caller: Acting caller
            name: Forum name
            forum_type: organizational or lawyer_advice
            description: Optional description
            forum_settings: Free-form settings object

        Returns:
            Created forum
        """
        name = require_text(name, "name", settings.forum_name_max_length)
        forum_type = parse_forum_type(forum_type)

        organization_id = None
        if forum_type == ForumType.ORGANIZATIONAL:
            if caller.organization_id is None:
                raise ValidationError(
                    "Organizational forums require the caller to belong to an organization"
                )
            organization_id = caller.organization_id

        forum = Forum(
            name=name,
            description=description,
            type=forum_type,
            organization_id=organization_id,
            created_by_user_id=caller.user_id,
            settings=dict(forum_settings or {}),
        )
        self.db.add(forum)
        await self.db.flush()

        logger.info(
            f"Forum {forum.id} ({forum_type.value}) created by user {caller.user_id}"
        )
        return await self.get_forum_or_404(forum.id)

    async def update_forum(
        self,
        caller: CallerContext,
        forum_id: int,
        name: str | None = None,
        description: str | None = None,
        forum_settings: dict[str, Any] | None = None,
    ) -> Forum:
        """Patch name/description/settings of a forum."""
        forum = await self.get_forum_or_404(forum_id)
        self.require_manage(caller, forum)

        values: dict[str, Any] = {}
        if name is not None:
            values["name"] = require_text(name, "name", settings.forum_name_max_length)
        if description is not None:
            values["description"] = description.strip() or None
        if forum_settings is not None:
            values["settings"] = dict(forum_settings)

        if values:
            values["updated_at"] = utcnow()
            await self.db.execute(
                update(Forum)
                .where(Forum.id == forum_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )

        return await self.get_forum_or_404(forum_id)

    async def delete_forum(self, caller: CallerContext, forum_id: int) -> None:
        """Delete forum with its categories, threads, posts and reactions."""
        forum = await self.get_forum_or_404(forum_id)
        self.require_manage(caller, forum)

        purged = await purge_threads(self.db, ForumThread.forum_id == forum_id)
        await self.db.execute(
            delete(ForumCategory).where(ForumCategory.forum_id == forum_id)
        )
        await self.db.execute(delete(Forum).where(Forum.id == forum_id))

        logger.info(
            f"Forum {forum_id} deleted by user {caller.user_id} ({purged} threads purged)"
        )
