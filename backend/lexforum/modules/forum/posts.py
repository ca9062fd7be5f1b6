"""
Post Tree Manager - replies within a thread.

Posts are stored flat; ``parent_post_id`` is the only nesting information.
Deleting a post leaves its replies in place with a dangling parent id.
"""

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lexforum.core.database import utcnow
from lexforum.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    ThreadClosedError,
    ValidationError,
)
from lexforum.core.security import CallerContext
from lexforum.models.forum import ForumPost, ForumThread
from lexforum.modules.forum.cascade import purge_post
from lexforum.modules.forum.common import Page, page_bounds, require_text
from lexforum.modules.forum.reactions import ReactionAggregator
from lexforum.modules.forum.threads import ThreadManager


@dataclass
class PostView:
    """Post with reply count and reaction data for one caller."""

    post: ForumPost
    reply_count: int = 0
    reaction_counts: dict[str, int] = field(default_factory=dict)
    user_reactions: list[str] = field(default_factory=list)


@dataclass
class ReplyNode:
    """Node of a derived reply tree."""

    view: PostView
    replies: list["ReplyNode"] = field(default_factory=list)


def build_reply_tree(views: list[PostView]) -> list[ReplyNode]:
    """
    Nest a flat, creation-ordered post list by parent id.

    Posts whose parent is not in the list (deleted, or on another page)
    become roots. The result is derived on demand and never stored.
    """
    nodes = {view.post.id: ReplyNode(view) for view in views}
    roots: list[ReplyNode] = []
    for view in views:
        parent = nodes.get(view.post.parent_post_id) if view.post.parent_post_id else None
        if parent is None:
            roots.append(nodes[view.post.id])
        else:
            parent.replies.append(nodes[view.post.id])
    return roots


class PostTreeManager:
    """
    Service for creating, editing, deleting and listing posts.

    Usage:
        posts = PostTreeManager(db_session, threads, reactions)
        page = await posts.list_posts(caller, thread_id)
    """

    def __init__(
        self,
        db: AsyncSession,
        threads: ThreadManager,
        reactions: ReactionAggregator,
    ) -> None:
        self.db = db
        self.threads = threads
        self.reactions = reactions

    def _post_query(self) -> Select:
        return (
            select(ForumPost)
            .options(
                selectinload(ForumPost.author),
                selectinload(ForumPost.parent).selectinload(ForumPost.author),
            )
            .execution_options(populate_existing=True)
        )

    async def get_post_or_404(
        self, post_id: str, thread_id: str | None = None
    ) -> ForumPost:
        """Load post by ID, optionally requiring it to sit in ``thread_id``."""
        result = await self.db.execute(self._post_query().where(ForumPost.id == post_id))
        post = result.scalar_one_or_none()
        if not post or (thread_id is not None and post.thread_id != thread_id):
            raise NotFoundError(f"Post {post_id} not found")
        return post

    async def _accessible_thread(
        self,
        caller: CallerContext,
        thread_id: str,
        forum_id: int | None = None,
    ) -> ForumThread:
        thread = await self.threads.get_thread_or_404(thread_id, forum_id)
        self.threads.forums.require_access(caller, thread.forum)
        return thread

    async def _views(
        self, caller: CallerContext, posts: list[ForumPost]
    ) -> list[PostView]:
        if not posts:
            return []

        post_ids = [p.id for p in posts]
        counts = await self.db.execute(
            select(ForumPost.parent_post_id, func.count())
            .where(ForumPost.parent_post_id.in_(post_ids))
            .group_by(ForumPost.parent_post_id)
        )
        reply_counts = {parent_id: count for parent_id, count in counts.all()}
        user_reactions = await self.reactions.get_user_reactions(caller.user_id, post_ids)

        return [
            PostView(
                post=p,
                reply_count=reply_counts.get(p.id, 0),
                reaction_counts=p.reaction_counts(),
                user_reactions=user_reactions.get(p.id, []),
            )
            for p in posts
        ]

    # ==================== Reads ====================

    async def get_post(
        self,
        caller: CallerContext,
        post_id: str,
        thread_id: str | None = None,
    ) -> PostView:
        """Single post view."""
        post = await self.get_post_or_404(post_id, thread_id)
        await self._accessible_thread(caller, post.thread_id)
        views = await self._views(caller, [post])
        return views[0]

    async def list_posts(
        self,
        caller: CallerContext,
        thread_id: str,
        limit: int | None = None,
        offset: int | None = None,
        forum_id: int | None = None,
    ) -> Page[PostView]:
        """
        Get posts in thread, oldest first.

        Args:
            caller: Requesting caller, used for ``user_reactions``
            thread_id: Thread ID
            limit: Max results
            offset: Pagination offset

        Returns:
            Page of post views
        """
        limit, offset = page_bounds(limit, offset)
        await self._accessible_thread(caller, thread_id, forum_id)

        total = await self.db.scalar(
            select(func.count())
            .select_from(ForumPost)
            .where(ForumPost.thread_id == thread_id)
        )
        query = (
            self._post_query()
            .where(ForumPost.thread_id == thread_id)
            .order_by(ForumPost.created_at, ForumPost.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(query)
        posts = list(result.scalars().all())

        return Page(
            items=await self._views(caller, posts),
            total=total or 0,
            limit=limit,
            offset=offset,
        )

    # ==================== Mutations ====================

    async def create_post(
        self,
        caller: CallerContext,
        thread_id: str,
        content: str,
        parent_post_id: str | None = None,
        forum_id: int | None = None,
    ) -> PostView:
        """
        Create new post in thread.

        Args:
            caller: Author, must be in the forum audience
            thread_id: Thread ID
            content: Post content
            parent_post_id: Post being replied to, must be in the same thread

        Returns:
            Created post view
        """
        thread = await self._accessible_thread(caller, thread_id, forum_id)
        if thread.is_closed:
            raise ThreadClosedError()

        content = require_text(content, "content")

        if parent_post_id is not None:
            parent_thread_id = await self.db.scalar(
                select(ForumPost.thread_id).where(ForumPost.id == parent_post_id)
            )
            if parent_thread_id != thread_id:
                raise ValidationError(
                    f"Parent post {parent_post_id} does not exist in thread {thread_id}"
                )

        post = ForumPost(
            thread_id=thread_id,
            user_id=caller.user_id,
            content=content,
            parent_post_id=parent_post_id,
        )
        self.db.add(post)
        await self.db.flush()

        logger.debug(f"Post {post.id} created in thread {thread_id} by user {caller.user_id}")
        return await self.get_post(caller, post.id)

    async def update_post(
        self,
        caller: CallerContext,
        post_id: str,
        content: str,
        thread_id: str | None = None,
    ) -> PostView:
        """Update post content; author only."""
        post = await self.get_post_or_404(post_id, thread_id)
        await self._accessible_thread(caller, post.thread_id)
        if caller.user_id != post.user_id:
            raise AuthorizationError("Only the author can edit this post")

        content = require_text(content, "content")
        await self.db.execute(
            update(ForumPost)
            .where(ForumPost.id == post_id)
            .values(content=content, is_edited=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return await self.get_post(caller, post_id)

    async def delete_post(
        self,
        caller: CallerContext,
        post_id: str,
        thread_id: str | None = None,
    ) -> None:
        """Delete post and its reactions; replies keep their parent id."""
        post = await self.get_post_or_404(post_id, thread_id)
        thread = await self._accessible_thread(caller, post.thread_id)
        if caller.user_id != post.user_id and not self.threads.can_manage_thread(
            caller, thread
        ):
            raise AuthorizationError("You are not allowed to delete this post")

        await purge_post(self.db, post_id)
        logger.info(f"Post {post_id} deleted by user {caller.user_id}")
