"""
Forum API Endpoints.

Forums, categories, threads, posts and reactions.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from lexforum.core.config import settings
from lexforum.core.database import get_db
from lexforum.core.security import CallerContext, get_caller
from lexforum.models.forum import (
    Forum,
    ForumCategory,
    ForumPostReaction,
    ForumThread,
    ForumType,
    ReactionType,
)
from lexforum.models.user import User
from lexforum.modules.forum.posts import PostView
from lexforum.modules.forum.service import ForumService

router = APIRouter()


def get_forum_service(db: AsyncSession = Depends(get_db)) -> ForumService:
    return ForumService(db)


# ==================== Schemas ====================


class CamelModel(BaseModel):
    """Request body accepting camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateForumRequest(CamelModel):
    """Create new forum."""

    name: str
    description: str | None = None
    type: ForumType
    settings: dict[str, Any] | None = None


class UpdateForumRequest(CamelModel):
    """Update forum."""

    name: str | None = None
    description: str | None = None
    settings: dict[str, Any] | None = None


class CreateCategoryRequest(CamelModel):
    """Create new category."""

    name: str
    description: str | None = None
    display_order: int | None = Field(default=None, ge=0)


class UpdateCategoryRequest(CamelModel):
    """Update category."""

    name: str | None = None
    description: str | None = None
    display_order: int | None = Field(default=None, ge=0)


class CreateThreadRequest(CamelModel):
    """Create new thread."""

    category_id: int | None = None
    title: str
    content: str


class UpdateThreadRequest(CamelModel):
    """Update thread fields or moderation flags."""

    title: str | None = None
    content: str | None = None
    is_pinned: bool | None = None
    is_closed: bool | None = None


class CreatePostRequest(CamelModel):
    """Create new post/reply."""

    content: str
    parent_post_id: str | None = None


class UpdatePostRequest(CamelModel):
    """Update post content."""

    content: str


class AddReactionRequest(CamelModel):
    """Add a reaction to a post."""

    reaction_type: ReactionType


# ==================== Serializers ====================


def _user_summary(user: User | None) -> dict[str, Any] | None:
    if not user:
        return None
    return {
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "email": user.email,
    }


def _forum_to_dict(forum: Forum) -> dict[str, Any]:
    return {
        "id": forum.id,
        "name": forum.name,
        "description": forum.description,
        "type": forum.type.value,
        "organizationId": forum.organization_id,
        "createdByUserId": forum.created_by_user_id,
        "creator": _user_summary(forum.creator),
        "settings": forum.settings or {},
        "createdAt": forum.created_at.isoformat(),
        "updatedAt": forum.updated_at.isoformat(),
    }


def _category_to_dict(category: ForumCategory) -> dict[str, Any]:
    return {
        "id": category.id,
        "forumId": category.forum_id,
        "name": category.name,
        "description": category.description,
        "displayOrder": category.display_order,
        "createdAt": category.created_at.isoformat(),
        "updatedAt": category.updated_at.isoformat(),
    }


def _thread_to_dict(thread: ForumThread, post_count: int | None = None) -> dict[str, Any]:
    data = {
        "id": thread.id,
        "forumId": thread.forum_id,
        "categoryId": thread.category_id,
        "userId": thread.user_id,
        "title": thread.title,
        "slug": thread.slug,
        "content": thread.content,
        "isPinned": thread.is_pinned,
        "isClosed": thread.is_closed,
        "viewCount": thread.view_count,
        "createdAt": thread.created_at.isoformat(),
        "updatedAt": thread.updated_at.isoformat(),
        "user": _user_summary(thread.author),
        "category": _category_to_dict(thread.category) if thread.category else None,
        "forum": {
            "id": thread.forum.id,
            "name": thread.forum.name,
            "type": thread.forum.type.value,
            "organizationId": thread.forum.organization_id,
        } if thread.forum else None,
    }
    if post_count is not None:
        data["postCount"] = post_count
    return data


def _post_to_dict(view: PostView) -> dict[str, Any]:
    post = view.post
    parent = post.parent
    return {
        "id": post.id,
        "threadId": post.thread_id,
        "userId": post.user_id,
        "content": post.content,
        "parentPostId": post.parent_post_id,
        "isEdited": post.is_edited,
        "createdAt": post.created_at.isoformat(),
        "updatedAt": post.updated_at.isoformat(),
        "user": _user_summary(post.author),
        "parentPost": {
            "id": parent.id,
            "content": parent.content,
            "userId": parent.user_id,
            "user": {
                "id": parent.author.id,
                "firstName": parent.author.first_name,
                "lastName": parent.author.last_name,
            } if parent.author else None,
        } if parent else None,
        "replyCount": view.reply_count,
        "reactionCounts": view.reaction_counts,
        "userReactions": view.user_reactions,
    }


def _reaction_to_dict(reaction: ForumPostReaction) -> dict[str, Any]:
    return {
        "id": reaction.id,
        "postId": reaction.post_id,
        "userId": reaction.user_id,
        "reactionType": reaction.reaction_type.value,
        "createdAt": reaction.created_at.isoformat(),
        "updatedAt": reaction.updated_at.isoformat(),
    }


def _deleted(message: str) -> dict[str, Any]:
    return {"success": True, "message": message}


# ==================== Forums ====================


@router.get("")
async def list_forums(
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Get all forums visible to the caller."""
    forums = await forum.forums.list_forums(caller)
    return {"success": True, "data": [_forum_to_dict(f) for f in forums]}


@router.post("", status_code=201)
async def create_forum(
    request: CreateForumRequest,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Create new forum."""
    created = await forum.forums.create_forum(
        caller,
        name=request.name,
        forum_type=request.type,
        description=request.description,
        forum_settings=request.settings,
    )
    data = _forum_to_dict(created)
    await forum.commit()
    return {"success": True, "data": data}


@router.get("/{forum_id}")
async def get_forum(
    forum_id: int,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Get forum details."""
    found = await forum.forums.get_forum(caller, forum_id)
    return {"success": True, "data": _forum_to_dict(found)}


@router.put("/{forum_id}")
async def update_forum(
    forum_id: int,
    request: UpdateForumRequest,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Update forum name, description or settings."""
    updated = await forum.forums.update_forum(
        caller,
        forum_id,
        name=request.name,
        description=request.description,
        forum_settings=request.settings,
    )
    data = _forum_to_dict(updated)
    await forum.commit()
    return {"success": True, "data": data}


@router.delete("/{forum_id}")
async def delete_forum(
    forum_id: int,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Delete forum and everything in it."""
    await forum.forums.delete_forum(caller, forum_id)
    await forum.commit()
    return _deleted("Forum deleted")


@router.get("/{forum_id}/stats")
async def get_forum_stats(
    forum_id: int,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Get forum statistics."""
    stats = await forum.forums.get_forum_stats(caller, forum_id)
    return {
        "success": True,
        "data": {
            "forumId": stats.forum_id,
            "categoryCount": stats.category_count,
            "threadCount": stats.thread_count,
        },
    }


# ==================== Categories ====================


@router.get("/{forum_id}/categories")
async def list_categories(
    forum_id: int,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Get forum categories in display order."""
    await forum.forums.get_forum(caller, forum_id)
    categories = await forum.categories.list_categories(forum_id)
    return {"success": True, "data": [_category_to_dict(c) for c in categories]}


@router.post("/{forum_id}/categories", status_code=201)
async def create_category(
    forum_id: int,
    request: CreateCategoryRequest,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Create new category."""
    category = await forum.categories.create_category(
        caller,
        forum_id,
        name=request.name,
        description=request.description,
        display_order=request.display_order,
    )
    data = _category_to_dict(category)
    await forum.commit()
    return {"success": True, "data": data}


@router.get("/{forum_id}/categories/{category_id}")
async def get_category(
    forum_id: int,
    category_id: int,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Get category details."""
    category = await forum.categories.get_category(caller, forum_id, category_id)
    return {"success": True, "data": _category_to_dict(category)}


@router.put("/{forum_id}/categories/{category_id}")
async def update_category(
    forum_id: int,
    category_id: int,
    request: UpdateCategoryRequest,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Update category."""
    category = await forum.categories.update_category(
        caller,
        forum_id,
        category_id,
        name=request.name,
        description=request.description,
        display_order=request.display_order,
    )
    data = _category_to_dict(category)
    await forum.commit()
    return {"success": True, "data": data}


@router.delete("/{forum_id}/categories/{category_id}")
async def delete_category(
    forum_id: int,
    category_id: int,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Delete category; its threads become uncategorized."""
    await forum.categories.delete_category(caller, forum_id, category_id)
    await forum.commit()
    return _deleted("Category deleted")


# ==================== Threads ====================


@router.get("/{forum_id}/threads")
async def list_threads(
    forum_id: int,
    category_id: int | None = Query(None, alias="categoryId"),
    search: str | None = Query(None, description="Title substring"),
    is_pinned: bool | None = Query(None, alias="isPinned"),
    limit: int = Query(settings.forum_page_size, ge=1, le=settings.forum_max_page_size),
    offset: int = Query(0, ge=0),
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Get threads with pagination."""
    await forum.forums.get_forum(caller, forum_id)
    page = await forum.threads.list_threads(
        forum_id,
        category_id=category_id,
        search=search,
        is_pinned=is_pinned,
        limit=limit,
        offset=offset,
    )
    return {
        "success": True,
        "data": [_thread_to_dict(item.thread, item.post_count) for item in page.items],
        "pagination": page.pagination(),
    }


@router.post("/{forum_id}/threads", status_code=201)
async def create_thread(
    forum_id: int,
    request: CreateThreadRequest,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Create new thread."""
    thread = await forum.threads.create_thread(
        caller,
        forum_id,
        title=request.title,
        content=request.content,
        category_id=request.category_id,
    )
    data = _thread_to_dict(thread)
    await forum.commit()
    return {"success": True, "data": data}


@router.get("/{forum_id}/threads/{thread_id}")
async def get_thread(
    forum_id: int,
    thread_id: str,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Get thread details; counts as a view."""
    thread = await forum.threads.get_thread(caller, thread_id, forum_id=forum_id)
    data = _thread_to_dict(thread)
    await forum.commit()
    return {"success": True, "data": data}


@router.put("/{forum_id}/threads/{thread_id}")
async def update_thread(
    forum_id: int,
    thread_id: str,
    request: UpdateThreadRequest,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Update thread content or moderation flags."""
    thread = await forum.threads.update_thread(
        caller,
        thread_id,
        title=request.title,
        content=request.content,
        is_pinned=request.is_pinned,
        is_closed=request.is_closed,
        forum_id=forum_id,
    )
    data = _thread_to_dict(thread)
    await forum.commit()
    return {"success": True, "data": data}


@router.delete("/{forum_id}/threads/{thread_id}")
async def delete_thread(
    forum_id: int,
    thread_id: str,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Delete thread with its posts."""
    await forum.threads.delete_thread(caller, thread_id, forum_id=forum_id)
    await forum.commit()
    return _deleted("Thread deleted")


# ==================== Posts ====================


async def _thread_in_forum(forum: ForumService, forum_id: int, thread_id: str) -> None:
    await forum.threads.get_thread_or_404(thread_id, forum_id)


@router.get("/{forum_id}/threads/{thread_id}/posts")
async def list_posts(
    forum_id: int,
    thread_id: str,
    limit: int = Query(settings.forum_page_size, ge=1, le=settings.forum_max_page_size),
    offset: int = Query(0, ge=0),
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Get posts in thread, oldest first."""
    page = await forum.posts.list_posts(
        caller, thread_id, limit=limit, offset=offset, forum_id=forum_id
    )
    return {
        "success": True,
        "data": [_post_to_dict(view) for view in page.items],
        "pagination": page.pagination(),
    }


@router.post("/{forum_id}/threads/{thread_id}/posts", status_code=201)
async def create_post(
    forum_id: int,
    thread_id: str,
    request: CreatePostRequest,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Create new post/reply in thread."""
    view = await forum.posts.create_post(
        caller,
        thread_id,
        content=request.content,
        parent_post_id=request.parent_post_id,
        forum_id=forum_id,
    )
    data = _post_to_dict(view)
    await forum.commit()
    return {"success": True, "data": data}


@router.get("/{forum_id}/threads/{thread_id}/posts/{post_id}")
async def get_post(
    forum_id: int,
    thread_id: str,
    post_id: str,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Get post details."""
    await _thread_in_forum(forum, forum_id, thread_id)
    view = await forum.posts.get_post(caller, post_id, thread_id=thread_id)
    return {"success": True, "data": _post_to_dict(view)}


@router.put("/{forum_id}/threads/{thread_id}/posts/{post_id}")
async def update_post(
    forum_id: int,
    thread_id: str,
    post_id: str,
    request: UpdatePostRequest,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Update post content."""
    await _thread_in_forum(forum, forum_id, thread_id)
    view = await forum.posts.update_post(
        caller, post_id, request.content, thread_id=thread_id
    )
    data = _post_to_dict(view)
    await forum.commit()
    return {"success": True, "data": data}


@router.delete("/{forum_id}/threads/{thread_id}/posts/{post_id}")
async def delete_post(
    forum_id: int,
    thread_id: str,
    post_id: str,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Delete post; replies stay."""
    await _thread_in_forum(forum, forum_id, thread_id)
    await forum.posts.delete_post(caller, post_id, thread_id=thread_id)
    await forum.commit()
    return _deleted("Post deleted")


# ==================== Reactions ====================


@router.get("/{forum_id}/threads/{thread_id}/posts/{post_id}/reactions")
async def list_reactions(
    forum_id: int,
    thread_id: str,
    post_id: str,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Get all reactions on a post."""
    await _thread_in_forum(forum, forum_id, thread_id)
    reactions = await forum.reactions.list_reactions(caller, post_id, thread_id=thread_id)
    return {"success": True, "data": [_reaction_to_dict(r) for r in reactions]}


@router.post("/{forum_id}/threads/{thread_id}/posts/{post_id}/reactions")
async def add_reaction(
    forum_id: int,
    thread_id: str,
    post_id: str,
    request: AddReactionRequest,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Add a reaction to a post."""
    await _thread_in_forum(forum, forum_id, thread_id)
    counts = await forum.reactions.add_reaction(
        caller, post_id, request.reaction_type, thread_id=thread_id
    )
    data = {"postId": post_id, "reactionCounts": counts}
    await forum.commit()
    return {"success": True, "data": data}


@router.delete("/{forum_id}/threads/{thread_id}/posts/{post_id}/reactions/{reaction_type}")
async def remove_reaction(
    forum_id: int,
    thread_id: str,
    post_id: str,
    reaction_type: str,
    caller: CallerContext = Depends(get_caller),
    forum: ForumService = Depends(get_forum_service),
) -> dict[str, Any]:
    """Remove a reaction from a post."""
    await _thread_in_forum(forum, forum_id, thread_id)
    counts = await forum.reactions.remove_reaction(
        caller, post_id, reaction_type, thread_id=thread_id
    )
    data = {"postId": post_id, "reactionCounts": counts}
    await forum.commit()
    return {"success": True, "data": data}
