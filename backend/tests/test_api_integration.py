"""Integration tests exercising API endpoints via FastAPI's TestClient."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from fastapi.testclient import TestClient

from app.core.security import create_access_token
from app.models import Message
from conftest import OTHER_TENANT_ID, TENANT_ID, auth_headers


def create_channel(client: TestClient, owner_id: int, name: str, **extra: Any) -> dict[str, Any]:
    response = client.post(
        "/api/chat/channels",
        json={"name": name, "channel_type": "public", **extra},
        headers=auth_headers(owner_id),
    )
    assert response.status_code == 201, response.text
    return response.json()


def add_channel_member(client: TestClient, actor_id: int, channel_id: int, user_id: int) -> None:
    response = client.post(
        f"/api/chat/channels/{channel_id}/members",
        json={"user_id": user_id},
        headers=auth_headers(actor_id),
    )
    assert response.status_code == 201, response.text


def send_message(client: TestClient, sender_id: int, **payload: Any) -> dict[str, Any]:
    response = client.post("/api/chat/messages", json=payload, headers=auth_headers(sender_id))
    assert response.status_code == 201, response.text
    return response.json()


def unread_for_channel(client: TestClient, user_id: int, channel_id: int) -> int:
    response = client.get("/api/chat/unread", headers=auth_headers(user_id))
    assert response.status_code == 200, response.text
    counts = {entry["channel_id"]: entry["count"] for entry in response.json() if entry["channel_id"]}
    return counts[channel_id]


def test_health_root_and_authentication(client: TestClient, users):
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/api/").status_code == 200
    assert client.get("/api/chat/channels").status_code == 401

    wrong_tenant = client.get("/api/chat/channels", headers=auth_headers(users["alice"], tenant_id=OTHER_TENANT_ID))
    assert wrong_tenant.status_code == 401


def test_scenario_unread_count_drops_after_mark_read(client: TestClient, users):
    channel = create_channel(client, users["alice"], "general")
    add_channel_member(client, users["alice"], channel["id"], users["bob"])

    sent = [
        send_message(client, users["alice"], channel_id=channel["id"], content=f"update {index}")
        for index in range(3)
    ]
    assert unread_for_channel(client, users["bob"], channel["id"]) == 3

    response = client.put(
        f"/api/chat/channels/{channel['id']}/read-status",
        json={"last_read_message_id": sent[2]["id"]},
        headers=auth_headers(users["bob"]),
    )
    assert response.status_code == 200, response.text
    assert response.json()["last_read_message_id"] == sent[2]["id"]
    assert unread_for_channel(client, users["bob"], channel["id"]) == 0

    # An older pointer never rewinds the read state.
    client.put(
        f"/api/chat/channels/{channel['id']}/read-status",
        json={"last_read_message_id": sent[0]["id"]},
        headers=auth_headers(users["bob"]),
    )
    detail = client.get(f"/api/chat/channels/{channel['id']}", headers=auth_headers(users["bob"])).json()
    bob_member = next(member for member in detail["members"] if member["user_id"] == users["bob"])
    assert bob_member["last_read_message_id"] == sent[2]["id"]
    assert detail["unread_count"] == 0


def test_scenario_toggle_twice_leaves_no_group(client: TestClient, users):
    channel = create_channel(client, users["alice"], "general")
    add_channel_member(client, users["alice"], channel["id"], users["bob"])
    message = send_message(client, users["alice"], channel_id=channel["id"], content="Ready?")

    url = f"/api/chat/messages/{message['id']}/reactions/toggle"
    first = client.post(url, json={"emoji": "👍"}, headers=auth_headers(users["bob"]))
    assert first.status_code == 200, first.text
    assert first.json()["present"] is True
    assert first.json()["reactions"] == [{"emoji": "👍", "count": 1, "user_ids": [users["bob"]]}]

    second = client.post(url, json={"emoji": "👍"}, headers=auth_headers(users["bob"]))
    assert second.json()["present"] is False
    assert second.json()["reactions"] == []


def test_duplicate_reaction_is_not_an_error(client: TestClient, users):
    channel = create_channel(client, users["alice"], "general")
    message = send_message(client, users["alice"], channel_id=channel["id"], content="Lunch?")
    url = f"/api/chat/messages/{message['id']}/reactions"

    first = client.post(url, json={"emoji": "🍕"}, headers=auth_headers(users["alice"]))
    second = client.post(url, json={"emoji": "🍕"}, headers=auth_headers(users["alice"]))
    assert first.status_code == second.status_code == 201
    assert first.json()["id"] == second.json()["id"]

    removed = client.delete(f"/api/chat/reactions/{first.json()['id']}", headers=auth_headers(users["alice"]))
    assert removed.status_code == 204
    again = client.delete(f"/api/chat/reactions/{first.json()['id']}", headers=auth_headers(users["alice"]))
    assert again.status_code == 204


def test_scenario_thread_replies_in_send_order(client: TestClient, users, session_factory):
    channel = create_channel(client, users["alice"], "general")
    for name in ("bob", "carol"):
        add_channel_member(client, users["alice"], channel["id"], users[name])
    parent = send_message(client, users["alice"], channel_id=channel["id"], content="Kickoff notes")

    bob_reply = send_message(
        client, users["bob"], channel_id=channel["id"], parent_message_id=parent["id"], content="Looks good"
    )
    carol_reply = send_message(
        client, users["carol"], channel_id=channel["id"], parent_message_id=parent["id"], content="+1"
    )

    session = session_factory()
    try:
        assert session.get(Message, parent["id"]).thread_reply_count == 2
    finally:
        session.close()

    response = client.get(
        "/api/chat/messages",
        params={"parent_message_id": parent["id"]},
        headers=auth_headers(users["alice"]),
    )
    assert response.status_code == 200, response.text
    assert [item["id"] for item in response.json()] == [bob_reply["id"], carol_reply["id"]]
    assert {item["message_type"] for item in response.json()} == {"thread_reply"}


def test_scenario_file_message_edit_and_delete(client: TestClient, users):
    channel = create_channel(client, users["alice"], "general")
    add_channel_member(client, users["alice"], channel["id"], users["bob"])
    message = send_message(
        client,
        users["alice"],
        channel_id=channel["id"],
        content="Quarterly report",
        file_url="https://files.example.com/report.pdf",
        file_name="report.pdf",
        file_size=52_000,
    )

    rejected = client.put(
        f"/api/chat/messages/{message['id']}",
        json={"content": "edited by bob"},
        headers=auth_headers(users["bob"]),
    )
    assert rejected.status_code == 403
    assert rejected.json()["code"] == "forbidden"

    deleted = client.delete(f"/api/chat/messages/{message['id']}", headers=auth_headers(users["alice"]))
    assert deleted.status_code == 204

    listing = client.get(
        "/api/chat/messages", params={"channel_id": channel["id"]}, headers=auth_headers(users["bob"])
    ).json()
    assert len(listing) == 1
    tombstone = listing[0]
    assert tombstone["id"] == message["id"]
    assert tombstone["is_deleted"] is True
    assert tombstone["content"] == ""
    assert tombstone["file_url"] is None
    assert tombstone["file_name"] is None

    again = client.delete(f"/api/chat/messages/{message['id']}", headers=auth_headers(users["alice"]))
    assert again.status_code == 404

    search = client.get(
        "/api/chat/search/messages", params={"query": "Quarterly"}, headers=auth_headers(users["bob"])
    )
    assert search.json() == []


def test_history_pages_reconstruct_the_full_log(client: TestClient, users):
    channel = create_channel(client, users["alice"], "general")
    sent_ids = [
        send_message(client, users["alice"], channel_id=channel["id"], content=f"line {index}")["id"]
        for index in range(120)
    ]

    collected: list[int] = []
    before_id = None
    pages = 0
    while True:
        params = {"limit": 50}
        if before_id is not None:
            params["before_id"] = before_id
        page = client.get(
            f"/api/chat/channels/{channel['id']}/history", params=params, headers=auth_headers(users["bob"])
        ).json()
        pages += 1
        ids = [item["id"] for item in page["items"]]
        assert ids == sorted(ids)
        collected = ids + collected
        if not page["has_more"]:
            break
        before_id = page["next_before_id"]

    assert pages == 3
    assert collected == sent_ids


def test_cached_history_follows_sends_and_edits(client: TestClient, users):
    channel = create_channel(client, users["alice"], "general")
    url = f"/api/chat/channels/{channel['id']}/history"
    first = send_message(client, users["alice"], channel_id=channel["id"], content="first")

    assert [item["id"] for item in client.get(url, headers=auth_headers(users["alice"])).json()["items"]] == [
        first["id"]
    ]

    second = send_message(client, users["alice"], channel_id=channel["id"], content="second")
    cached = client.get(url, headers=auth_headers(users["alice"])).json()
    assert [item["id"] for item in cached["items"]] == [first["id"], second["id"]]

    client.put(
        f"/api/chat/messages/{first['id']}", json={"content": "first, edited"}, headers=auth_headers(users["alice"])
    )
    refreshed = client.get(url, headers=auth_headers(users["alice"])).json()
    assert refreshed["items"][0]["content"] == "first, edited"
    assert refreshed["items"][0]["is_edited"] is True

    metrics = client.get("/metrics").text
    assert 'chat_history_cache_requests_total{result="hit"}' in metrics


def test_private_history_is_hidden_from_outsiders(client: TestClient, users):
    response = client.post(
        "/api/chat/channels",
        json={"name": "leadership", "channel_type": "private"},
        headers=auth_headers(users["alice"]),
    )
    channel = response.json()
    secret = send_message(client, users["alice"], channel_id=channel["id"], content="confidential")

    assert client.get(f"/api/chat/messages/{secret['id']}", headers=auth_headers(users["alice"])).status_code == 200
    assert client.get(f"/api/chat/messages/{secret['id']}", headers=auth_headers(users["bob"])).status_code == 403

    history = client.get(f"/api/chat/channels/{channel['id']}/history", headers=auth_headers(users["bob"]))
    assert history.status_code == 403
    listing = client.get("/api/chat/channels", headers=auth_headers(users["bob"])).json()
    assert channel["id"] not in [item["id"] for item in listing]
    search = client.get("/api/chat/search/messages", params={"query": "confid"}, headers=auth_headers(users["bob"]))
    assert search.json() == []


def test_dm_creation_behaviours(client: TestClient, users):
    payload = {"is_dm": True, "member_user_ids": [users["bob"]]}
    first = client.post("/api/chat/groups", json=payload, headers=auth_headers(users["alice"]))
    second = client.post("/api/chat/groups", json=payload, headers=auth_headers(users["alice"]))
    assert first.status_code == second.status_code == 201
    assert first.json()["id"] != second.json()["id"]
    assert first.json()["icon"] == "message-circle"

    reused = client.post(
        "/api/chat/groups",
        json={**payload, "reuse_existing_dm": True},
        headers=auth_headers(users["bob"]),
    )
    assert reused.json()["id"] == first.json()["id"]

    listing = client.get("/api/chat/groups", params={"is_dm": True}, headers=auth_headers(users["bob"])).json()
    assert len(listing) == 2

    carol_view = client.get(f"/api/chat/groups/{first.json()['id']}", headers=auth_headers(users["carol"]))
    assert carol_view.status_code == 403


def test_duplicate_channel_name_reports_existing_id(client: TestClient, users):
    original = create_channel(client, users["alice"], "General")
    assert original["name"] == "general"
    assert original["icon"] == "hash"

    response = client.post(
        "/api/chat/channels",
        json={"name": "  general ", "channel_type": "private"},
        headers=auth_headers(users["bob"]),
    )
    assert response.status_code == 409
    assert response.json() == {
        "detail": "Channel name already exists",
        "code": "conflict",
        "existing_id": original["id"],
    }


def test_messages_query_requires_exactly_one_target(client: TestClient, users):
    channel = create_channel(client, users["alice"], "general")

    missing = client.get("/api/chat/messages", headers=auth_headers(users["alice"]))
    assert missing.status_code == 400
    assert missing.json()["code"] == "validation_error"

    ambiguous = client.get(
        "/api/chat/messages",
        params={"channel_id": channel["id"], "group_id": 1},
        headers=auth_headers(users["alice"]),
    )
    assert ambiguous.status_code == 400


def test_read_only_and_archived_channels_reject_writes(client: TestClient, users):
    channel = create_channel(client, users["alice"], "announcements", is_read_only=True)
    add_channel_member(client, users["alice"], channel["id"], users["bob"])

    bob_view = client.get(f"/api/chat/channels/{channel['id']}", headers=auth_headers(users["bob"])).json()
    owner_view = client.get(f"/api/chat/channels/{channel['id']}", headers=auth_headers(users["alice"])).json()
    assert bob_view["can_write"] is False
    assert owner_view["can_write"] is True

    blocked = client.post(
        "/api/chat/messages",
        json={"channel_id": channel["id"], "content": "hello?"},
        headers=auth_headers(users["bob"]),
    )
    assert blocked.status_code == 403
    assert blocked.json()["detail"] == "Channel is read-only"

    archived = client.put(
        f"/api/chat/channels/{channel['id']}", json={"is_archived": True}, headers=auth_headers(users["alice"])
    )
    assert archived.status_code == 200
    assert archived.json()["is_archived"] is True

    owner_blocked = client.post(
        "/api/chat/messages",
        json={"channel_id": channel["id"], "content": "one more"},
        headers=auth_headers(users["alice"]),
    )
    assert owner_blocked.status_code == 403

    restore = client.put(
        f"/api/chat/channels/{channel['id']}", json={"is_archived": False}, headers=auth_headers(users["alice"])
    )
    assert restore.status_code == 400


def test_channel_filters_and_mentions(client: TestClient, users):
    create_channel(client, users["alice"], "event-ops", event_id=42)
    general = create_channel(client, users["alice"], "general")
    add_channel_member(client, users["alice"], general["id"], users["bob"])

    filtered = client.get("/api/chat/channels", params={"event_id": 42}, headers=auth_headers(users["bob"])).json()
    assert [item["name"] for item in filtered] == ["event-ops"]

    message = send_message(
        client,
        users["alice"],
        channel_id=general["id"],
        content="@bob can you review?",
        mentioned_user_ids=[users["bob"]],
    )
    mentions = client.get("/api/chat/mentions", params={"unread_only": True}, headers=auth_headers(users["bob"]))
    assert [item["message_id"] for item in mentions.json()] == [message["id"]]

    client.put(
        f"/api/chat/channels/{general['id']}/read-status",
        json={"last_read_message_id": message["id"]},
        headers=auth_headers(users["bob"]),
    )
    after = client.get("/api/chat/mentions", params={"unread_only": True}, headers=auth_headers(users["bob"]))
    assert after.json() == []


def test_expired_or_incomplete_tokens_are_rejected(client: TestClient, users):
    expired = create_access_token(users["alice"], TENANT_ID, expires_delta=timedelta(minutes=-1))
    response = client.get("/api/chat/unread", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token has expired"

    unknown_user = client.get("/api/chat/unread", headers=auth_headers(999_999))
    assert unknown_user.status_code == 401


def test_search_finds_live_messages_newest_first(client: TestClient, users):
    channel = create_channel(client, users["alice"], "general")
    older = send_message(client, users["alice"], channel_id=channel["id"], content="Budget draft v1")
    newer = send_message(client, users["alice"], channel_id=channel["id"], content="budget draft v2")
    send_message(client, users["alice"], channel_id=channel["id"], content="unrelated")

    response = client.get(
        "/api/chat/search/messages", params={"query": "budget"}, headers=auth_headers(users["bob"])
    )
    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [newer["id"], older["id"]]

    outsider = client.get(
        "/api/chat/search/messages",
        params={"query": "budget"},
        headers=auth_headers(users["mallory"], tenant_id=OTHER_TENANT_ID),
    )
    assert outsider.json() == []


def test_cached_history_reflects_mentions_marked_read(client: TestClient, users):
    channel = create_channel(client, users["alice"], "general")
    add_channel_member(client, users["alice"], channel["id"], users["bob"])
    url = f"/api/chat/channels/{channel['id']}/history"
    message = send_message(
        client, users["alice"], channel_id=channel["id"], content="@bob ping", mentioned_user_ids=[users["bob"]]
    )

    before = client.get(url, headers=auth_headers(users["bob"])).json()
    assert before["items"][0]["mentions"][0]["is_read"] is False

    client.put(
        f"/api/chat/channels/{channel['id']}/read-status",
        json={"last_read_message_id": message["id"]},
        headers=auth_headers(users["bob"]),
    )
    after = client.get(url, headers=auth_headers(users["bob"])).json()
    assert after["items"][0]["mentions"][0]["is_read"] is True


def test_message_query_treats_wildcards_literally(client: TestClient, users):
    channel = create_channel(client, users["alice"], "general")
    send_message(client, users["alice"], channel_id=channel["id"], content="price is 500")
    discount = send_message(client, users["alice"], channel_id=channel["id"], content="50% off")
    send_message(client, users["alice"], channel_id=channel["id"], content="snake_case")
    send_message(client, users["alice"], channel_id=channel["id"], content="the cat")

    percent = client.get(
        "/api/chat/messages",
        params={"channel_id": channel["id"], "query": "50%"},
        headers=auth_headers(users["alice"]),
    ).json()
    assert [item["id"] for item in percent] == [discount["id"]]

    underscore = client.get(
        "/api/chat/messages",
        params={"channel_id": channel["id"], "query": "e_c"},
        headers=auth_headers(users["alice"]),
    ).json()
    assert [item["content"] for item in underscore] == ["snake_case"]


def test_search_filters_narrow_results(client: TestClient, users):
    channel = create_channel(client, users["alice"], "general")
    add_channel_member(client, users["alice"], channel["id"], users["bob"])
    root = send_message(client, users["alice"], channel_id=channel["id"], content="launch plan")
    reply = send_message(
        client, users["bob"], channel_id=channel["id"], content="launch plan looks good", parent_message_id=root["id"]
    )
    attachment = send_message(
        client,
        users["alice"],
        channel_id=channel["id"],
        content="launch plan slides",
        file_url="https://files.example.com/plan.pdf",
        file_name="plan.pdf",
        file_size=1_024,
    )

    def search(**params: Any) -> list[int]:
        response = client.get(
            "/api/chat/search/messages", params={"query": "launch", **params}, headers=auth_headers(users["bob"])
        )
        assert response.status_code == 200, response.text
        return [item["id"] for item in response.json()]

    assert search() == [attachment["id"], reply["id"], root["id"]]
    assert search(sender_id=users["bob"]) == [reply["id"]]
    assert search(has_file=True) == [attachment["id"]]
    assert search(has_file=False) == [reply["id"], root["id"]]
    assert search(parent_message_id=root["id"]) == [reply["id"]]
    assert search(start_at="2000-01-01T00:00:00") == [attachment["id"], reply["id"], root["id"]]
    assert search(end_at="2000-01-01T00:00:00") == []

    inverted = client.get(
        "/api/chat/search/messages",
        params={"query": "launch", "start_at": "2001-01-01T00:00:00", "end_at": "2000-01-01T00:00:00"},
        headers=auth_headers(users["bob"]),
    )
    assert inverted.status_code == 400
    assert inverted.json()["code"] == "validation_error"


def test_mentions_disappear_after_leaving_a_private_channel(client: TestClient, users):
    response = client.post(
        "/api/chat/channels",
        json={"name": "war-room", "channel_type": "private"},
        headers=auth_headers(users["alice"]),
    )
    channel = response.json()
    add_channel_member(client, users["alice"], channel["id"], users["bob"])
    send_message(
        client, users["alice"], channel_id=channel["id"], content="@bob secret plan", mentioned_user_ids=[users["bob"]]
    )
    assert len(client.get("/api/chat/mentions", headers=auth_headers(users["bob"])).json()) == 1

    removed = client.delete(
        f"/api/chat/channels/{channel['id']}/members/{users['bob']}", headers=auth_headers(users["alice"])
    )
    assert removed.status_code == 204

    assert client.get("/api/chat/mentions", headers=auth_headers(users["bob"])).json() == []
