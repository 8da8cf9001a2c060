"""Unit tests for channel and group creation and updates."""

from __future__ import annotations

import pytest

from app.core.errors import Conflict, Forbidden, ValidationError
from app.core.slug import normalize_channel_name
from app.models import ChannelType, Group, MemberRole
from app.services import ChannelDraft, ConversationLifecycle, ConversationQueryService
from conftest import OTHER_TENANT_ID, make_principal


@pytest.fixture()
def lifecycle(db_session):
    return ConversationLifecycle(db_session)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("General", "general"),
        ("  Team   Updates ", "team-updates"),
        ("Ｑ３ Planning", "q3-planning"),
        ("release\tnotes\nv2", "release-notes-v2"),
    ],
)
def test_channel_names_are_normalized(raw, expected):
    assert normalize_channel_name(raw) == expected


def test_creator_becomes_owner(db_session, users, lifecycle):
    channel = lifecycle.create_channel(
        ChannelDraft(name="Design Reviews", channel_type=ChannelType.DEPARTMENT, department="design"),
        make_principal(users["alice"]),
    )
    db_session.commit()

    assert channel.name == "design-reviews"
    assert channel.icon == "users"
    assert [(member.user_id, member.role) for member in channel.members] == [(users["alice"], MemberRole.OWNER)]


def test_duplicate_names_conflict_within_a_tenant_only(db_session, users, lifecycle):
    original = lifecycle.create_channel(
        ChannelDraft(name="general", channel_type=ChannelType.PUBLIC), make_principal(users["alice"])
    )
    db_session.commit()

    with pytest.raises(Conflict) as excinfo:
        lifecycle.create_channel(
            ChannelDraft(name=" GENERAL ", channel_type=ChannelType.PRIVATE), make_principal(users["bob"])
        )
    assert excinfo.value.existing_id == original.id

    other = lifecycle.create_channel(
        ChannelDraft(name="general", channel_type=ChannelType.PUBLIC),
        make_principal(users["mallory"], tenant_id=OTHER_TENANT_ID),
    )
    assert other.id != original.id


def test_update_renames_and_archives_for_good(db_session, users, lifecycle):
    alice = make_principal(users["alice"])
    channel = lifecycle.create_channel(ChannelDraft(name="old", channel_type=ChannelType.PUBLIC), alice)
    db_session.commit()

    updated = lifecycle.update_channel(channel.id, {"name": "New Name", "is_read_only": True}, alice)
    db_session.commit()
    assert updated.name == "new-name"
    assert updated.is_read_only is True

    lifecycle.update_channel(channel.id, {"is_archived": True}, alice)
    db_session.commit()
    with pytest.raises(ValidationError):
        lifecycle.update_channel(channel.id, {"is_archived": False}, alice)
    with pytest.raises(Forbidden):
        lifecycle.update_channel(channel.id, {"description": "too late"}, alice)


def test_update_rejects_immutable_fields_and_non_managers(db_session, users, lifecycle):
    alice = make_principal(users["alice"])
    channel = lifecycle.create_channel(ChannelDraft(name="fixed", channel_type=ChannelType.PUBLIC), alice)
    db_session.commit()

    with pytest.raises(ValidationError):
        lifecycle.update_channel(channel.id, {"channel_type": ChannelType.PRIVATE}, alice)
    with pytest.raises(Forbidden):
        lifecycle.update_channel(channel.id, {"description": "mine now"}, make_principal(users["bob"]))


def test_non_dm_groups_need_a_name(users, lifecycle):
    with pytest.raises(ValidationError):
        lifecycle.create_group(make_principal(users["alice"]), name="  ", is_dm=False, member_ids=[users["bob"]])


def test_dm_requires_exactly_one_other_member(users, lifecycle):
    alice = make_principal(users["alice"])
    with pytest.raises(ValidationError):
        lifecycle.create_group(alice, name=None, is_dm=True, member_ids=[])
    with pytest.raises(ValidationError):
        lifecycle.create_group(alice, name=None, is_dm=True, member_ids=[users["bob"], users["carol"]])
    with pytest.raises(ValidationError):
        lifecycle.create_group(alice, name=None, is_dm=True, member_ids=[users["mallory"]])


def test_dm_creation_duplicates_by_default(db_session, users, lifecycle):
    alice = make_principal(users["alice"])
    first = lifecycle.create_group(alice, name=None, is_dm=True, member_ids=[users["bob"]])
    second = lifecycle.create_group(
        make_principal(users["bob"]), name=None, is_dm=True, member_ids=[users["alice"]]
    )
    db_session.commit()

    assert first.id != second.id
    dms = ConversationQueryService(db_session).list_groups(alice, is_dm=True)
    assert [group.id for group in dms] == [first.id, second.id]


def test_dm_creation_can_reuse_the_existing_pair(db_session, users, lifecycle):
    alice = make_principal(users["alice"])
    first = lifecycle.create_group(alice, name=None, is_dm=True, member_ids=[users["bob"]])
    db_session.commit()

    reused = lifecycle.create_group(
        make_principal(users["bob"]), name=None, is_dm=True, member_ids=[users["alice"]], reuse_existing_dm=True
    )
    other_pair = lifecycle.create_group(
        alice, name=None, is_dm=True, member_ids=[users["carol"]], reuse_existing_dm=True
    )
    db_session.commit()

    assert reused.id == first.id
    assert other_pair.id != first.id
    assert db_session.query(Group).filter(Group.is_dm.is_(True)).count() == 2
