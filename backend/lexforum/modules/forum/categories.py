"""
Category Store - ordered topic categories per forum.
"""

from typing import Any

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lexforum.core.database import utcnow
from lexforum.core.exceptions import NotFoundError
from lexforum.core.security import CallerContext
from lexforum.models.forum import ForumCategory, ForumThread
from lexforum.modules.forum.common import require_display_order, require_text
from lexforum.modules.forum.forums import ForumManager

CATEGORY_NAME_MAX_LENGTH = 100


class CategoryStore:
    """
    Per-forum categories, managed by whoever may manage the forum.

    Usage:
        categories = CategoryStore(db_session, ForumManager(db_session))
        await categories.list_categories(forum_id)
    """

    def __init__(self, db: AsyncSession, forums: ForumManager) -> None:
        self.db = db
        self.forums = forums

    async def get_category_or_404(self, forum_id: int, category_id: int) -> ForumCategory:
        """Load a category that belongs to the given forum."""
        query = select(ForumCategory).where(
            ForumCategory.id == category_id,
            ForumCategory.forum_id == forum_id,
        )
        result = await self.db.execute(query)
        category = result.scalar_one_or_none()
        if not category:
            raise NotFoundError(f"Category {category_id} not found in forum {forum_id}")
        return category

    async def get_category(
        self, caller: CallerContext, forum_id: int, category_id: int
    ) -> ForumCategory:
        await self.forums.get_forum(caller, forum_id)
        return await self.get_category_or_404(forum_id, category_id)

    async def list_categories(self, forum_id: int) -> list[ForumCategory]:
        """Categories by display order, oldest first on ties."""
        query = (
            select(ForumCategory)
            .where(ForumCategory.forum_id == forum_id)
            .order_by(
                ForumCategory.display_order,
                ForumCategory.created_at,
                ForumCategory.id,
            )
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_category(
        self,
        caller: CallerContext,
        forum_id: int,
        name: str,
        description: str | None = None,
        display_order: int | None = None,
    ) -> ForumCategory:
        """
        Create new category.

        Args:
            caller: Acting caller, must manage the forum
            forum_id: Owning forum
            name: Category name
            description: Optional description
            display_order: Position; appended after the last category if omitted

        Returns:
            Created category
        """
        forum = await self.forums.get_forum_or_404(forum_id)
        self.forums.require_manage(caller, forum)
        name = require_text(name, "name", CATEGORY_NAME_MAX_LENGTH)

        if display_order is not None:
            require_display_order(display_order)
        else:
            current_max = await self.db.scalar(
                select(func.max(ForumCategory.display_order)).where(
                    ForumCategory.forum_id == forum_id
                )
            )
            display_order = 0 if current_max is None else current_max + 1

        category = ForumCategory(
            forum_id=forum_id,
            name=name,
            description=description,
            display_order=display_order,
        )
        self.db.add(category)
        await self.db.flush()
        return category

    async def update_category(
        self,
        caller: CallerContext,
        forum_id: int,
        category_id: int,
        name: str | None = None,
        description: str | None = None,
        display_order: int | None = None,
    ) -> ForumCategory:
        """Patch a category."""
        forum = await self.forums.get_forum_or_404(forum_id)
        self.forums.require_manage(caller, forum)
        await self.get_category_or_404(forum_id, category_id)

        values: dict[str, Any] = {}
        if name is not None:
            values["name"] = require_text(name, "name", CATEGORY_NAME_MAX_LENGTH)
        if description is not None:
            values["description"] = description.strip() or None
        if display_order is not None:
            values["display_order"] = require_display_order(display_order)

        if values:
            values["updated_at"] = utcnow()
            await self.db.execute(
                update(ForumCategory)
                .where(ForumCategory.id == category_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )

        result = await self.db.execute(
            select(ForumCategory)
            .where(ForumCategory.id == category_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def delete_category(
        self, caller: CallerContext, forum_id: int, category_id: int
    ) -> None:
        """Delete a category; its threads stay and lose the category."""
        forum = await self.forums.get_forum_or_404(forum_id)
        self.forums.require_manage(caller, forum)
        await self.get_category_or_404(forum_id, category_id)

        await self.db.execute(
            update(ForumThread)
            .where(ForumThread.category_id == category_id)
            .values(category_id=None)
        )
        await self.db.execute(
            delete(ForumCategory).where(ForumCategory.id == category_id)
        )
        logger.info(f"Category {category_id} deleted from forum {forum_id}")
