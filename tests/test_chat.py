import pytest
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import NotMemberException, ValidationException
from app.models.chat import Conversation, ConversationMember
from app.services import chat_service, social_service
from tests.utils import auth_headers, make_friends, make_user

API = "/api/chat"


@pytest.fixture
def friends(session):
    alice = make_user(session, username="alice")
    bob = make_user(session, username="bob")
    make_friends(session, alice, bob)
    return alice, bob


# ── Direct conversations ──────────────────────────────────────────────────────

def test_get_or_create_direct_is_idempotent_both_ways(session, friends):
    alice, bob = friends

    first = chat_service.get_or_create_direct(session, alice.id, bob.id)
    second = chat_service.get_or_create_direct(session, bob.id, alice.id)
    third = chat_service.get_or_create_direct(session, alice.id, bob.id)

    assert first.id == second.id == third.id
    assert (first.direct_user_one_id, first.direct_user_two_id) == (alice.id, bob.id)
    assert first.created_by == alice.id
    assert session.query(Conversation).count() == 1
    assert session.query(ConversationMember).count() == 2


def test_get_or_create_direct_recovers_from_lost_race(session, friends, monkeypatch):
    alice, bob = friends
    existing = chat_service.get_or_create_direct(session, alice.id, bob.id)

    # The lookup misses once, as if the other participant inserted in between
    real_find = chat_service._find_direct
    calls = []

    def stale_find(db, user_one_id, user_two_id):
        calls.append((user_one_id, user_two_id))
        if len(calls) == 1:
            return None
        return real_find(db, user_one_id, user_two_id)

    monkeypatch.setattr(chat_service, "_find_direct", stale_find)

    conversation = chat_service.get_or_create_direct(session, bob.id, alice.id)
    assert conversation.id == existing.id
    assert len(calls) == 2
    assert session.query(Conversation).count() == 1
    assert session.query(ConversationMember).count() == 2


def test_get_or_create_direct_with_unknown_user_raises(session, friends):
    alice, _ = friends
    with pytest.raises(IntegrityError):
        chat_service.get_or_create_direct(session, alice.id, 999999)
    session.rollback()
    assert session.query(Conversation).count() == 0


@pytest.mark.asyncio
async def test_open_direct(client: AsyncClient, session, friends):
    alice, bob = friends

    resp = await client.post(f"{API}/direct/{bob.id}", headers=auth_headers(alice))
    assert resp.status_code == 200
    conversation = resp.json()["data"]["conversation"]
    assert conversation["type"] == "direct"

    again = await client.post(f"{API}/direct/{alice.id}", headers=auth_headers(bob))
    assert again.json()["data"]["conversation"]["id"] == conversation["id"]


@pytest.mark.asyncio
async def test_open_direct_rules(client: AsyncClient, session, friends):
    alice, _ = friends
    stranger = make_user(session, username="stranger")

    with_self = await client.post(f"{API}/direct/{alice.id}", headers=auth_headers(alice))
    assert with_self.status_code == 400

    missing = await client.post(f"{API}/direct/999999", headers=auth_headers(alice))
    assert missing.status_code == 404
    assert missing.json()["message"] == "User not found"

    not_friends = await client.post(f"{API}/direct/{stranger.id}", headers=auth_headers(alice))
    assert not_friends.status_code == 403
    assert not_friends.json()["message"] == "You can only chat with friends"
    assert session.query(Conversation).count() == 0


# ── Messages ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_send_and_list_messages(client: AsyncClient, session, friends):
    alice, bob = friends
    conversation = chat_service.get_or_create_direct(session, alice.id, bob.id)
    url = f"{API}/conversations/{conversation.id}/messages"

    sent = await client.post(url, json={"content": "  on my way  "}, headers=auth_headers(alice))
    assert sent.status_code == 201
    message = sent.json()["data"]["message"]
    assert message["content"] == "on my way"
    assert message["type"] == "text"
    assert message["sender_id"] == alice.id

    image = await client.post(
        url,
        json={"content": "garage", "type": "image", "metadata": {"url": "https://cdn.example/x.jpg", "width": 640}},
        headers=auth_headers(bob),
    )
    assert image.status_code == 201
    assert image.json()["data"]["message"]["metadata"]["width"] == 640

    listed = await client.get(url, headers=auth_headers(bob))
    assert [m["content"] for m in listed.json()["data"]["messages"]] == ["garage", "on my way"]


@pytest.mark.asyncio
async def test_send_message_validation(client: AsyncClient, session, friends):
    alice, bob = friends
    conversation = chat_service.get_or_create_direct(session, alice.id, bob.id)
    url = f"{API}/conversations/{conversation.id}/messages"

    blank = await client.post(url, json={"content": "   "}, headers=auth_headers(alice))
    assert blank.status_code == 400
    assert blank.json()["message"] == "Message content is required"

    bad_type = await client.post(url, json={"content": "hi", "type": "video"}, headers=auth_headers(alice))
    assert bad_type.status_code == 400


def test_message_pagination(session, friends):
    alice, bob = friends
    conversation = chat_service.get_or_create_direct(session, alice.id, bob.id)
    for i in range(15):
        chat_service.send_message(session, conversation.id, alice.id, f"message {i}")

    page = chat_service.list_messages(session, conversation.id, bob.id, limit=10)
    assert [m.content for m in page] == [f"message {i}" for i in range(14, 4, -1)]

    rest = chat_service.list_messages(session, conversation.id, bob.id, limit=10, offset=10)
    assert [m.content for m in rest] == [f"message {i}" for i in range(4, -1, -1)]

    clamped = chat_service.list_messages(session, conversation.id, bob.id, limit=0, offset=-5)
    assert len(clamped) == 1


def test_service_rejects_blank_before_membership(session, friends):
    alice, bob = friends
    conversation = chat_service.get_or_create_direct(session, alice.id, bob.id)
    with pytest.raises(ValidationException):
        chat_service.send_message(session, conversation.id, alice.id, "")


@pytest.mark.asyncio
async def test_non_member_is_refused(client: AsyncClient, session, friends):
    alice, bob = friends
    outsider = make_user(session, username="outsider")
    conversation = chat_service.get_or_create_direct(session, alice.id, bob.id)
    url = f"{API}/conversations/{conversation.id}/messages"

    read = await client.get(url, headers=auth_headers(outsider))
    write = await client.post(url, json={"content": "hi"}, headers=auth_headers(outsider))
    mark = await client.patch(f"{API}/conversations/{conversation.id}/read", headers=auth_headers(outsider))

    for resp in (read, write, mark):
        assert resp.status_code == 403
        assert resp.json()["message"] == "You are not a member of this conversation"


def test_membership_survives_unfriending(session, friends):
    alice, bob = friends
    conversation = chat_service.get_or_create_direct(session, alice.id, bob.id)
    social_service.remove_friendship(session, alice.id, bob.id)

    message = chat_service.send_message(session, conversation.id, bob.id, "still here")
    assert message.id is not None

    stranger = make_user(session, username="stranger")
    with pytest.raises(NotMemberException):
        chat_service.list_messages(session, conversation.id, stranger.id)


# ── Conversations list / read state ───────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_conversations_with_last_message(client: AsyncClient, session, friends):
    alice, bob = friends
    carol = make_user(session, username="carol")
    make_friends(session, alice, carol)

    with_bob = chat_service.get_or_create_direct(session, alice.id, bob.id)
    with_carol = chat_service.get_or_create_direct(session, carol.id, alice.id)
    chat_service.send_message(session, with_bob.id, bob.id, "first")
    chat_service.send_message(session, with_bob.id, alice.id, "second")

    resp = await client.get(f"{API}/conversations", headers=auth_headers(alice))
    conversations = {c["id"]: c for c in resp.json()["data"]["conversations"]}

    assert set(conversations) == {with_bob.id, with_carol.id}
    assert conversations[with_bob.id]["last_message"]["content"] == "second"
    assert conversations[with_carol.id]["last_message"] is None
    assert conversations[with_bob.id]["last_read_at"] is None

    bob_view = await client.get(f"{API}/conversations", headers=auth_headers(bob))
    assert [c["id"] for c in bob_view.json()["data"]["conversations"]] == [with_bob.id]


@pytest.mark.asyncio
async def test_mark_read(client: AsyncClient, session, friends):
    alice, bob = friends
    conversation = chat_service.get_or_create_direct(session, alice.id, bob.id)

    resp = await client.patch(f"{API}/conversations/{conversation.id}/read", headers=auth_headers(bob))
    assert resp.status_code == 200
    read_state = resp.json()["data"]["read_state"]
    assert read_state["conversation_id"] == conversation.id
    assert read_state["user_id"] == bob.id
    assert read_state["last_read_at"] is not None

    listed = await client.get(f"{API}/conversations", headers=auth_headers(bob))
    assert listed.json()["data"]["conversations"][0]["last_read_at"] is not None
