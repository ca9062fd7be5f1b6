"""
Forum permission rules.

The forum kind is resolved once into a scope variant; every check below is
a pure function over ``(caller, scope)``.
"""

from dataclasses import dataclass

from loguru import logger

from lexforum.core.exceptions import InternalError
from lexforum.core.security import CallerContext
from lexforum.models.forum import Forum, ForumType


@dataclass(frozen=True, slots=True)
class OrganizationalScope:
    """Forum private to one organization."""

    organization_id: int


@dataclass(frozen=True, slots=True)
class LawyerAdviceScope:
    """Public forum owned by the user who created it."""

    created_by_user_id: int


ForumScope = OrganizationalScope | LawyerAdviceScope


def forum_scope(forum: Forum) -> ForumScope:
    """Build the scope variant for a stored forum."""
    if forum.type == ForumType.ORGANIZATIONAL:
        if forum.organization_id is None:
            logger.critical(f"Organizational forum {forum.id} has no organization")
            raise InternalError("Forum is missing its organization")
        return OrganizationalScope(organization_id=forum.organization_id)

    if forum.organization_id is not None:
        logger.critical(f"Lawyer-advice forum {forum.id} carries an organization")
        raise InternalError("Forum carries an unexpected organization")
    return LawyerAdviceScope(created_by_user_id=forum.created_by_user_id)


def can_access_forum(caller: CallerContext, scope: ForumScope) -> bool:
    """Whether the caller belongs to the forum audience."""
    if isinstance(scope, LawyerAdviceScope):
        return True
    return caller.organization_id == scope.organization_id


def can_manage_forum(caller: CallerContext, scope: ForumScope) -> bool:
    """Gate for forum update/delete and category management."""
    if isinstance(scope, OrganizationalScope):
        return caller.is_admin and caller.organization_id == scope.organization_id
    return caller.user_id == scope.created_by_user_id


def can_manage_thread(
    caller: CallerContext, scope: ForumScope, thread_author_id: int
) -> bool:
    """Gate for pin/close toggles and moderator deletes."""
    if isinstance(scope, OrganizationalScope):
        return caller.is_admin and caller.organization_id == scope.organization_id
    return caller.user_id == thread_author_id
