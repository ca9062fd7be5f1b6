"""
Forum Service - wires the forum managers to one database session.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from lexforum.modules.forum.categories import CategoryStore
from lexforum.modules.forum.forums import ForumManager
from lexforum.modules.forum.posts import PostTreeManager
from lexforum.modules.forum.reactions import ReactionAggregator
from lexforum.modules.forum.threads import ThreadManager


class ForumService:
    """
    Entry point for forum, category, thread, post and reaction operations.

    Usage:
        forum = ForumService(db_session)
        page = await forum.threads.list_threads(forum_id, search="custody")
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize forum service with database session."""
        self.db = db
        self.forums = ForumManager(db)
        self.categories = CategoryStore(db, self.forums)
        self.threads = ThreadManager(db, self.forums, self.categories)
        self.reactions = ReactionAggregator(db, self.forums)
        self.posts = PostTreeManager(db, self.threads, self.reactions)

    async def commit(self) -> None:
        """Commit the request's unit of work."""
        await self.db.commit()
