"""
Thread Manager - thread lifecycle, view counts and listing.
"""

from dataclasses import dataclass
from typing import Any

from loguru import logger
from slugify import slugify
from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lexforum.core.config import settings
from lexforum.core.database import utcnow
from lexforum.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from lexforum.core.security import CallerContext
from lexforum.models.forum import ForumPost, ForumThread
from lexforum.modules.forum.cascade import purge_threads
from lexforum.modules.forum.categories import CategoryStore
from lexforum.modules.forum.common import Page, escape_like, page_bounds, require_text
from lexforum.modules.forum.forums import ForumManager
from lexforum.modules.forum.permissions import can_manage_thread, forum_scope


@dataclass
class ThreadListItem:
    """Thread row plus its post count."""

    thread: ForumThread
    post_count: int = 0


def make_slug(title: str) -> str:
    return slugify(title)[: settings.forum_slug_max_length] or "thread"


class ThreadManager:
    """
    Service for thread creation, moderation and listing.

    Usage:
        threads = ThreadManager(db_session, forums, categories)
        page = await threads.list_threads(forum_id, search="custody")
    """

    def __init__(
        self,
        db: AsyncSession,
        forums: ForumManager,
        categories: CategoryStore,
    ) -> None:
        self.db = db
        self.forums = forums
        self.categories = categories

    def _thread_query(self) -> Select:
        return (
            select(ForumThread)
            .options(
                selectinload(ForumThread.author),
                selectinload(ForumThread.category),
                selectinload(ForumThread.forum),
            )
            .execution_options(populate_existing=True)
        )

    async def get_thread_or_404(
        self, thread_id: str, forum_id: int | None = None
    ) -> ForumThread:
        """Load thread with author, category and forum; optionally pin to a forum."""
        result = await self.db.execute(
            self._thread_query().where(ForumThread.id == thread_id)
        )
        thread = result.scalar_one_or_none()
        if not thread or (forum_id is not None and thread.forum_id != forum_id):
            raise NotFoundError(f"Thread {thread_id} not found")
        return thread

    def can_manage_thread(self, caller: CallerContext, thread: ForumThread) -> bool:
        return can_manage_thread(caller, forum_scope(thread.forum), thread.user_id)

    # ==================== Reads ====================

    async def get_thread(
        self,
        caller: CallerContext,
        thread_id: str,
        forum_id: int | None = None,
    ) -> ForumThread:
        """Get thread for display; every successful read counts as a view."""
        thread = await self.get_thread_or_404(thread_id, forum_id)
        self.forums.require_access(caller, thread.forum)

        await self.db.execute(
            update(ForumThread)
            .where(ForumThread.id == thread_id)
            .values(view_count=ForumThread.view_count + 1)
        )
        return await self.get_thread_or_404(thread_id)

    async def list_threads(
        self,
        forum_id: int,
        category_id: int | None = None,
        search: str | None = None,
        is_pinned: bool | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Page[ThreadListItem]:
        """
        Get threads with pagination.

        Args:
            forum_id: Forum to list
            category_id: Filter by category
            search: Case-insensitive substring of the title
            is_pinned: Filter by pin flag
            limit: Max results
            offset: Pagination offset

        Returns:
            Page of threads, pinned first then newest first
        """
        limit, offset = page_bounds(limit, offset)

        criteria: list[Any] = [ForumThread.forum_id == forum_id]
        if category_id is not None:
            criteria.append(ForumThread.category_id == category_id)
        if is_pinned is not None:
            criteria.append(ForumThread.is_pinned == is_pinned)
        if search and search.strip():
            pattern = f"%{escape_like(search.strip())}%"
            criteria.append(ForumThread.title.ilike(pattern, escape="\\"))

        total = await self.db.scalar(
            select(func.count()).select_from(ForumThread).where(*criteria)
        )

        query = (
            self._thread_query()
            .where(*criteria)
            .order_by(
                ForumThread.is_pinned.desc(),
                ForumThread.created_at.desc(),
                ForumThread.id.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(query)
        threads = list(result.scalars().all())

        post_counts: dict[str, int] = {}
        if threads:
            counts = await self.db.execute(
                select(ForumPost.thread_id, func.count())
                .where(ForumPost.thread_id.in_([t.id for t in threads]))
                .group_by(ForumPost.thread_id)
            )
            post_counts = {thread_id: count for thread_id, count in counts.all()}

        return Page(
            items=[ThreadListItem(t, post_counts.get(t.id, 0)) for t in threads],
            total=total or 0,
            limit=limit,
            offset=offset,
        )

    # ==================== Mutations ====================

    async def create_thread(
        self,
        caller: CallerContext,
        forum_id: int,
        title: str,
        content: str,
        category_id: int | None = None,
    ) -> ForumThread:
        """
        Create new forum thread.

        Args:
            caller: Author, must be in the forum audience
            forum_id: Forum ID
            title: Thread title
            content: Opening content
            category_id: Optional category of the same forum

        Returns:
            Created thread
        """
        forum = await self.forums.get_forum_or_404(forum_id)
        self.forums.require_access(caller, forum)

        title = require_text(title, "title", settings.forum_title_max_length)
        content = require_text(content, "content")

        if category_id is not None:
            try:
                await self.categories.get_category_or_404(forum_id, category_id)
            except NotFoundError:
                raise ValidationError(
                    f"Category {category_id} does not belong to forum {forum_id}"
                )

        thread = ForumThread(
            forum_id=forum_id,
            category_id=category_id,
            user_id=caller.user_id,
            title=title,
            slug=make_slug(title),
            content=content,
        )
        self.db.add(thread)
        await self.db.flush()

        logger.info(f"Thread {thread.id} created in forum {forum_id} by user {caller.user_id}")
        return await self.get_thread_or_404(thread.id)

    async def update_thread(
        self,
        caller: CallerContext,
        thread_id: str,
        title: str | None = None,
        content: str | None = None,
        is_pinned: bool | None = None,
        is_closed: bool | None = None,
        forum_id: int | None = None,
    ) -> ForumThread:
        """
        Patch a thread.

        Title/content belong to the author; pin/close belong to moderators.
        Only the provided fields are written.
        """
        thread = await self.get_thread_or_404(thread_id, forum_id)

        values: dict[str, Any] = {}
        if title is not None or content is not None:
            if caller.user_id != thread.user_id:
                raise AuthorizationError("Only the author can edit this thread")
            if title is not None:
                values["title"] = require_text(
                    title, "title", settings.forum_title_max_length
                )
                values["slug"] = make_slug(values["title"])
            if content is not None:
                values["content"] = require_text(content, "content")

        if is_pinned is not None or is_closed is not None:
            if not self.can_manage_thread(caller, thread):
                raise AuthorizationError("You are not allowed to moderate this thread")
            if is_pinned is not None:
                values["is_pinned"] = is_pinned
            if is_closed is not None:
                values["is_closed"] = is_closed

        if values:
            values["updated_at"] = utcnow()
            await self.db.execute(
                update(ForumThread)
                .where(ForumThread.id == thread_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if "is_closed" in values:
                state = "closed" if values["is_closed"] else "reopened"
                logger.info(f"Thread {thread_id} {state} by user {caller.user_id}")

        return await self.get_thread_or_404(thread_id)

    async def delete_thread(
        self,
        caller: CallerContext,
        thread_id: str,
        forum_id: int | None = None,
    ) -> None:
        """Delete thread with all posts and reactions."""
        thread = await self.get_thread_or_404(thread_id, forum_id)
        if caller.user_id != thread.user_id and not self.can_manage_thread(caller, thread):
            raise AuthorizationError("You are not allowed to delete this thread")

        await purge_threads(self.db, ForumThread.id == thread_id)
        logger.info(f"Thread {thread_id} deleted by user {caller.user_id}")
