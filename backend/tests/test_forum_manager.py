"""Forum lifecycle, visibility and stats."""

import pytest
from sqlalchemy import func, select

from lexforum.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from lexforum.models.forum import ForumPost, ForumPostReaction, ForumThread, ForumType


async def test_create_organizational_forum_takes_caller_org(forum, org_admin):
    created = await forum.forums.create_forum(org_admin, "Case team", ForumType.ORGANIZATIONAL)

    assert created.organization_id == org_admin.organization_id
    assert created.created_by_user_id == org_admin.user_id
    assert created.settings == {}
    assert created.creator.first_name == "Ada"


async def test_create_organizational_forum_requires_org(forum, public_user):
    with pytest.raises(ValidationError):
        await forum.forums.create_forum(public_user, "Case team", "organizational")


async def test_lawyer_advice_forum_has_no_org(forum, org_admin):
    created = await forum.forums.create_forum(org_admin, "Ask a lawyer", "lawyer_advice")
    assert created.organization_id is None


@pytest.mark.parametrize("name", ["", "   ", None])
async def test_create_forum_requires_name(forum, org_admin, name):
    with pytest.raises(ValidationError):
        await forum.forums.create_forum(org_admin, name, ForumType.LAWYER_ADVICE)


async def test_create_forum_rejects_unknown_type(forum, org_admin):
    with pytest.raises(ValidationError):
        await forum.forums.create_forum(org_admin, "Name", "secret_society")


async def test_list_forums_visibility(forum, org_admin, other_org_user, public_user):
    team_a = await forum.forums.create_forum(org_admin, "Team A", ForumType.ORGANIZATIONAL)
    team_b = await forum.forums.create_forum(other_org_user, "Team B", ForumType.ORGANIZATIONAL)
    advice = await forum.forums.create_forum(public_user, "Advice", ForumType.LAWYER_ADVICE)

    visible_a = {f.id for f in await forum.forums.list_forums(org_admin)}
    visible_b = {f.id for f in await forum.forums.list_forums(other_org_user)}
    visible_public = {f.id for f in await forum.forums.list_forums(public_user)}

    assert visible_a == {team_a.id, advice.id}
    assert visible_b == {team_b.id, advice.id}
    assert visible_public == {advice.id}

    listed = await forum.forums.list_forums(public_user)
    assert listed[0].creator.last_name == "Public"


async def test_get_forum_hidden_from_other_org(forum, org_admin, other_org_user):
    team = await forum.forums.create_forum(org_admin, "Team A", ForumType.ORGANIZATIONAL)

    with pytest.raises(AuthorizationError):
        await forum.forums.get_forum(other_org_user, team.id)
    with pytest.raises(NotFoundError):
        await forum.forums.get_forum(org_admin, 999)


async def test_update_forum_patches_fields(forum, org_admin, org_member):
    team = await forum.forums.create_forum(
        org_admin, "Team A", ForumType.ORGANIZATIONAL, description="old"
    )
    before = team.updated_at

    with pytest.raises(AuthorizationError):
        await forum.forums.update_forum(org_member, team.id, name="Hijacked")

    updated = await forum.forums.update_forum(
        org_admin, team.id, forum_settings={"allowAnonymous": False}
    )
    assert updated.name == "Team A"
    assert updated.description == "old"
    assert updated.settings == {"allowAnonymous": False}
    assert updated.updated_at > before


async def test_lawyer_advice_forum_managed_by_creator(forum, public_user, org_admin):
    advice = await forum.forums.create_forum(public_user, "Advice", ForumType.LAWYER_ADVICE)

    with pytest.raises(AuthorizationError):
        await forum.forums.delete_forum(org_admin, advice.id)

    await forum.forums.delete_forum(public_user, advice.id)
    with pytest.raises(NotFoundError):
        await forum.forums.get_forum(public_user, advice.id)


async def test_delete_forum_cascades(forum, db, org_admin, org_member):
    team = await forum.forums.create_forum(org_admin, "Team A", ForumType.ORGANIZATIONAL)
    category = await forum.categories.create_category(org_admin, team.id, "Filings")
    thread = await forum.threads.create_thread(
        org_member, team.id, "Deadline", "When is it?", category_id=category.id
    )
    post = await forum.posts.create_post(org_member, thread.id, "Friday")
    await forum.reactions.add_reaction(org_admin, post.post.id, "helpful")

    await forum.forums.delete_forum(org_admin, team.id)

    assert await db.scalar(select(func.count()).select_from(ForumThread)) == 0
    assert await db.scalar(select(func.count()).select_from(ForumPost)) == 0
    assert await db.scalar(select(func.count()).select_from(ForumPostReaction)) == 0
    assert await forum.categories.list_categories(team.id) == []


async def test_forum_stats(forum, org_admin, org_member):
    team = await forum.forums.create_forum(org_admin, "Team A", ForumType.ORGANIZATIONAL)
    await forum.categories.create_category(org_admin, team.id, "Filings")
    await forum.threads.create_thread(org_member, team.id, "One", "x")
    await forum.threads.create_thread(org_member, team.id, "Two", "y")

    stats = await forum.forums.get_forum_stats(org_member, team.id)

    assert (stats.forum_id, stats.category_count, stats.thread_count) == (team.id, 1, 2)
