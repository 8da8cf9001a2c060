"""Unit tests for read pointers and unread aggregation."""

from __future__ import annotations

import pytest

from app.core.errors import Forbidden, NotFound, ValidationError
from app.models import ChannelTarget, ChannelType, ConversationKind, GroupTarget, Mention
from app.services import (
    ChannelDraft,
    ConversationLifecycle,
    MembershipService,
    MessageStore,
    ReadStateTracker,
)
from conftest import make_principal


@pytest.fixture()
def setup(db_session, users):
    alice = make_principal(users["alice"])
    lifecycle = ConversationLifecycle(db_session)
    general = lifecycle.create_channel(ChannelDraft(name="general", channel_type=ChannelType.PUBLIC), alice)
    random = lifecycle.create_channel(ChannelDraft(name="random", channel_type=ChannelType.PUBLIC), alice)
    MembershipService(db_session).add_member(ChannelTarget(general.id), users["bob"], alice)
    group = lifecycle.create_group(alice, name="pair", is_dm=False, member_ids=[users["bob"]])
    db_session.commit()
    return {"general": ChannelTarget(general.id), "random": ChannelTarget(random.id), "group": GroupTarget(group.id)}


@pytest.fixture()
def tracker(db_session):
    return ReadStateTracker(db_session)


def test_pointer_never_moves_backwards(db_session, users, setup, tracker):
    alice = make_principal(users["alice"])
    store = MessageStore(db_session)
    ids = [store.send(setup["general"], alice, f"m{index}").id for index in range(3)]
    db_session.commit()
    bob = make_principal(users["bob"])

    tracker.mark_read(setup["general"], bob, ids[2])
    db_session.commit()
    member = tracker.mark_read(setup["general"], bob, ids[0]).member
    db_session.commit()

    assert member.last_read_message_id == ids[2]
    assert tracker.unread_count(setup["general"], bob) == 0


def test_unread_count_skips_own_and_deleted_messages(db_session, users, setup, tracker):
    alice = make_principal(users["alice"])
    bob = make_principal(users["bob"])
    store = MessageStore(db_session)
    store.send(setup["general"], alice, "one")
    doomed = store.send(setup["general"], alice, "two")
    store.send(setup["general"], bob, "mine")
    db_session.commit()
    store.delete(doomed.id, alice)
    db_session.commit()

    assert tracker.unread_count(setup["general"], bob) == 1
    assert tracker.unread_count(setup["general"], make_principal(users["carol"])) == 0


def test_mark_read_validates_the_message(db_session, users, setup, tracker):
    alice = make_principal(users["alice"])
    bob = make_principal(users["bob"])
    elsewhere = MessageStore(db_session).send(setup["group"], alice, "psst")
    db_session.commit()

    with pytest.raises(NotFound):
        tracker.mark_read(setup["general"], bob, 424242)
    with pytest.raises(ValidationError):
        tracker.mark_read(setup["general"], bob, elsewhere.id)
    with pytest.raises(Forbidden):
        tracker.mark_read(setup["random"], bob, elsewhere.id)


def test_mark_read_clears_mentions_up_to_the_pointer(db_session, users, setup, tracker):
    alice = make_principal(users["alice"])
    bob = make_principal(users["bob"])
    store = MessageStore(db_session)
    first = store.send(setup["general"], alice, "@bob one", mentioned_user_ids=[users["bob"]])
    second = store.send(setup["general"], alice, "@bob two", mentioned_user_ids=[users["bob"]])
    db_session.commit()

    mark = tracker.mark_read(setup["general"], bob, first.id)
    db_session.commit()

    assert mark.mentions_cleared == 1

    states = {
        mention.message_id: mention.is_read
        for mention in db_session.query(Mention).filter(Mention.mentioned_user_id == users["bob"])
    }
    assert states == {first.id: True, second.id: False}


def test_summary_lists_every_membership_including_zero(db_session, users, setup, tracker):
    alice = make_principal(users["alice"])
    bob = make_principal(users["bob"])
    store = MessageStore(db_session)
    store.send(setup["general"], alice, "hello")
    store.send(setup["general"], alice, "again")
    store.send(setup["group"], alice, "ping")
    db_session.commit()

    summary = {(entry.kind, entry.conversation_id): entry.count for entry in tracker.unread_summary(bob)}
    assert summary == {
        (ConversationKind.CHANNEL, setup["general"].id): 2,
        (ConversationKind.GROUP, setup["group"].id): 1,
    }

    alice_summary = {(entry.kind, entry.conversation_id): entry.count for entry in tracker.unread_summary(alice)}
    assert alice_summary == {
        (ConversationKind.CHANNEL, setup["general"].id): 0,
        (ConversationKind.CHANNEL, setup["random"].id): 0,
        (ConversationKind.GROUP, setup["group"].id): 0,
    }
