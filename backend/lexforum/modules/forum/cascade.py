"""
Hard-delete helpers shared by forum, thread and post deletion.
"""

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from lexforum.models.forum import ForumPost, ForumPostReaction, ForumThread


async def purge_threads(db: AsyncSession, *criteria: Any) -> int:
    """Delete threads matching ``criteria`` with their posts and reactions."""
    thread_ids = select(ForumThread.id).where(*criteria)
    post_ids = select(ForumPost.id).where(ForumPost.thread_id.in_(thread_ids))

    await db.execute(
        delete(ForumPostReaction).where(ForumPostReaction.post_id.in_(post_ids))
    )
    await db.execute(delete(ForumPost).where(ForumPost.thread_id.in_(thread_ids)))
    result = await db.execute(delete(ForumThread).where(*criteria))
    return result.rowcount


async def purge_post(db: AsyncSession, post_id: str) -> None:
    """Delete one post and its reactions; replies are left in place."""
    await db.execute(
        delete(ForumPostReaction).where(ForumPostReaction.post_id == post_id)
    )
    await db.execute(delete(ForumPost).where(ForumPost.id == post_id))
