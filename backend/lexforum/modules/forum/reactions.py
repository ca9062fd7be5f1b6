"""
Reaction Aggregator - per-post reaction rows and their counters.

Counters live on the post row and only move when a reaction row was
actually inserted or deleted, so repeated adds/removes are no-ops.
"""

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lexforum.core.exceptions import InternalError, NotFoundError, ValidationError
from lexforum.core.security import CallerContext
from lexforum.models.forum import (
    REACTION_COUNTER_ATTRS,
    ForumPost,
    ForumPostReaction,
    ForumThread,
    ReactionType,
)
from lexforum.modules.forum.forums import ForumManager


def parse_reaction_type(value: ReactionType | str) -> ReactionType:
    try:
        return ReactionType(value)
    except ValueError:
        allowed = ", ".join(member.value for member in ReactionType)
        raise ValidationError(f"reactionType must be one of: {allowed}")


def empty_counts() -> dict[str, int]:
    return {reaction.value: 0 for reaction in ReactionType}


class ReactionAggregator:
    """
    Service for adding, removing and counting post reactions.

    Usage:
        reactions = ReactionAggregator(db_session, forums)
        counts = await reactions.add_reaction(caller, post_id, "helpful")
    """

    def __init__(self, db: AsyncSession, forums: ForumManager) -> None:
        self.db = db
        self.forums = forums

    async def _get_post_or_404(
        self, post_id: str, thread_id: str | None = None
    ) -> ForumPost:
        query = (
            select(ForumPost)
            .options(selectinload(ForumPost.thread).selectinload(ForumThread.forum))
            .where(ForumPost.id == post_id)
        )
        result = await self.db.execute(query)
        post = result.scalar_one_or_none()
        if not post or (thread_id is not None and post.thread_id != thread_id):
            raise NotFoundError(f"Post {post_id} not found")
        return post

    async def _get_accessible_post(
        self, caller: CallerContext, post_id: str, thread_id: str | None
    ) -> ForumPost:
        post = await self._get_post_or_404(post_id, thread_id)
        self.forums.require_access(caller, post.thread.forum)
        return post

    # ==================== Counts ====================

    async def get_reaction_counts(self, post_id: str) -> dict[str, int]:
        """Counter snapshot for all reaction types."""
        columns = [
            getattr(ForumPost, REACTION_COUNTER_ATTRS[reaction])
            for reaction in ReactionType
        ]
        result = await self.db.execute(select(*columns).where(ForumPost.id == post_id))
        row = result.one_or_none()
        if row is None:
            raise NotFoundError(f"Post {post_id} not found")
        return {reaction.value: count for reaction, count in zip(ReactionType, row)}

    async def get_user_reactions(
        self, user_id: int, post_ids: list[str]
    ) -> dict[str, list[str]]:
        """Reaction types the user applied, per post."""
        if not post_ids:
            return {}

        result = await self.db.execute(
            select(ForumPostReaction.post_id, ForumPostReaction.reaction_type).where(
                ForumPostReaction.user_id == user_id,
                ForumPostReaction.post_id.in_(post_ids),
            )
        )
        applied: dict[str, set[ReactionType]] = {}
        for post_id, reaction_type in result.all():
            applied.setdefault(post_id, set()).add(reaction_type)

        order = list(ReactionType)
        return {
            post_id: [r.value for r in sorted(types, key=order.index)]
            for post_id, types in applied.items()
        }

    async def list_reactions(
        self,
        caller: CallerContext,
        post_id: str,
        thread_id: str | None = None,
    ) -> list[ForumPostReaction]:
        """All reaction rows on a post, oldest first."""
        await self._get_accessible_post(caller, post_id, thread_id)
        result = await self.db.execute(
            select(ForumPostReaction)
            .where(ForumPostReaction.post_id == post_id)
            .order_by(ForumPostReaction.created_at, ForumPostReaction.id)
        )
        return list(result.scalars().all())

    # ==================== Mutations ====================

    async def add_reaction(
        self,
        caller: CallerContext,
        post_id: str,
        reaction_type: ReactionType | str,
        thread_id: str | None = None,
    ) -> dict[str, int]:
        """
        Add a reaction; adding an existing one changes nothing.

        Returns:
            Updated counts for the post
        """
        reaction_type = parse_reaction_type(reaction_type)
        await self._get_accessible_post(caller, post_id, thread_id)

        existing = await self.db.scalar(
            select(ForumPostReaction.id).where(
                ForumPostReaction.post_id == post_id,
                ForumPostReaction.user_id == caller.user_id,
                ForumPostReaction.reaction_type == reaction_type,
            )
        )
        if existing is None and await self._insert(post_id, caller.user_id, reaction_type):
            counter = getattr(ForumPost, REACTION_COUNTER_ATTRS[reaction_type])
            await self.db.execute(
                update(ForumPost)
                .where(ForumPost.id == post_id)
                .values({counter: counter + 1})
            )
        else:
            logger.debug(
                f"Reaction {reaction_type.value} by user {caller.user_id} "
                f"already on post {post_id}"
            )

        return await self.get_reaction_counts(post_id)

    async def _insert(
        self, post_id: str, user_id: int, reaction_type: ReactionType
    ) -> bool:
        """Insert inside a savepoint; a concurrent duplicate counts as present."""
        reaction = ForumPostReaction(
            post_id=post_id,
            user_id=user_id,
            reaction_type=reaction_type,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(reaction)
        except IntegrityError:
            return False
        return True

    async def remove_reaction(
        self,
        caller: CallerContext,
        post_id: str,
        reaction_type: ReactionType | str,
        thread_id: str | None = None,
    ) -> dict[str, int]:
        """
        Remove a reaction; removing a missing one changes nothing.

        Returns:
            Updated counts for the post
        """
        reaction_type = parse_reaction_type(reaction_type)
        await self._get_accessible_post(caller, post_id, thread_id)

        result = await self.db.execute(
            delete(ForumPostReaction).where(
                ForumPostReaction.post_id == post_id,
                ForumPostReaction.user_id == caller.user_id,
                ForumPostReaction.reaction_type == reaction_type,
            )
        )
        if result.rowcount:
            counter = getattr(ForumPost, REACTION_COUNTER_ATTRS[reaction_type])
            decremented = await self.db.execute(
                update(ForumPost)
                .where(ForumPost.id == post_id, counter > 0)
                .values({counter: counter - 1})
            )
            if not decremented.rowcount:
                logger.critical(
                    f"Reaction counter {counter.key} of post {post_id} would go negative"
                )
                raise InternalError("Reaction counter out of sync")
        else:
            logger.debug(
                f"Reaction {reaction_type.value} by user {caller.user_id} "
                f"not present on post {post_id}"
            )

        return await self.get_reaction_counts(post_id)
