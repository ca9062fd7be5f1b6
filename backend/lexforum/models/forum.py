"""
Forum models for case-team and lawyer-advice discussions.

Includes:
- Forums (organizational or lawyer_advice)
- Categories (per-forum sections)
- Threads
- Posts (flat adjacency list via parent_post_id)
- Reactions
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any

import ulid
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lexforum.core.database import Base, utcnow
from lexforum.models.user import User


def new_id() -> str:
    """Time-sortable opaque identifier for threads, posts and reactions."""
    return str(ulid.new())


class ForumType(str, PyEnum):
    """Forum audience kind."""

    ORGANIZATIONAL = "organizational"
    LAWYER_ADVICE = "lawyer_advice"


class ReactionType(str, PyEnum):
    """Reaction a caller can leave on a post."""

    LIKE = "like"
    HELPFUL = "helpful"
    INSIGHTFUL = "insightful"


class Forum(Base):
    """Top-level discussion space."""

    __tablename__ = "forums"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    type: Mapped[ForumType] = mapped_column(
        Enum(
            ForumType,
            name="forum_type",
            native_enum=False,
            values_callable=lambda enum: [member.value for member in enum],
        )
    )
    # Required iff type == organizational
    organization_id: Mapped[int | None] = mapped_column(Integer, index=True)
    created_by_user_id: Mapped[int] = mapped_column(Integer, index=True)
    settings: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Relationships
    creator: Mapped["User | None"] = relationship(
        User,
        primaryjoin=lambda: Forum.created_by_user_id == User.id,
        foreign_keys=lambda: [Forum.created_by_user_id],
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<Forum {self.name} ({self.type.value})>"


class ForumCategory(Base):
    """Forum category/section."""

    __tablename__ = "forum_categories"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    forum_id: Mapped[int] = mapped_column(
        ForeignKey("forums.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)
    display_order: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"<ForumCategory {self.name}>"


class ForumThread(Base):
    """Forum thread."""

    __tablename__ = "forum_threads"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=new_id)
    forum_id: Mapped[int] = mapped_column(
        ForeignKey("forums.id", ondelete="CASCADE"), index=True
    )
    category_id: Mapped[int | None] = mapped_column(
        ForeignKey("forum_categories.id", ondelete="SET NULL"), index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, index=True)

    title: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255), index=True)
    content: Mapped[str] = mapped_column(Text)

    # Status
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False)

    # Stats
    view_count: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Relationships
    forum: Mapped["Forum"] = relationship()
    category: Mapped["ForumCategory | None"] = relationship()
    author: Mapped["User | None"] = relationship(
        User,
        primaryjoin=lambda: ForumThread.user_id == User.id,
        foreign_keys=lambda: [ForumThread.user_id],
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<ForumThread {self.title[:30]}>"


class ForumPost(Base):
    """Forum post/reply."""

    __tablename__ = "forum_posts"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=new_id)
    thread_id: Mapped[str] = mapped_column(
        ForeignKey("forum_threads.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    # No foreign key: replies keep the id after their parent is deleted
    parent_post_id: Mapped[str | None] = mapped_column(String(26), index=True)

    content: Mapped[str] = mapped_column(Text)
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False)

    # Reaction counters, one column per ReactionType
    like_count: Mapped[int] = mapped_column(Integer, default=0)
    helpful_count: Mapped[int] = mapped_column(Integer, default=0)
    insightful_count: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Relationships
    thread: Mapped["ForumThread"] = relationship()
    author: Mapped["User | None"] = relationship(
        User,
        primaryjoin=lambda: ForumPost.user_id == User.id,
        foreign_keys=lambda: [ForumPost.user_id],
        viewonly=True,
    )
    parent: Mapped["ForumPost | None"] = relationship(
        "ForumPost",
        primaryjoin=lambda: ForumPost.parent_post_id == ForumPost.id,
        foreign_keys=lambda: [ForumPost.parent_post_id],
        remote_side=lambda: [ForumPost.id],
        viewonly=True,
    )

    def reaction_counts(self) -> dict[str, int]:
        """Counter snapshot for all reaction types."""
        return {
            reaction.value: getattr(self, REACTION_COUNTER_ATTRS[reaction])
            for reaction in ReactionType
        }

    def __repr__(self) -> str:
        return f"<ForumPost {self.id} in thread {self.thread_id}>"


class ForumPostReaction(Base):
    """A (post, user, reaction type) triple."""

    __tablename__ = "forum_post_reactions"
    __table_args__ = (
        UniqueConstraint(
            "post_id", "user_id", "reaction_type", name="uq_forum_post_reaction"
        ),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=new_id)
    post_id: Mapped[str] = mapped_column(
        ForeignKey("forum_posts.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    reaction_type: Mapped[ReactionType] = mapped_column(
        Enum(
            ReactionType,
            name="reaction_type",
            native_enum=False,
            values_callable=lambda enum: [member.value for member in enum],
        )
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


REACTION_COUNTER_ATTRS: dict[ReactionType, str] = {
    ReactionType.LIKE: "like_count",
    ReactionType.HELPFUL: "helpful_count",
    ReactionType.INSIGHTFUL: "insightful_count",
}
