"""
Session store evals -- create, append, list order, JSON persistence.
"""

import pytest

from huddle.messages import Attachment, ChatMessage
from huddle.sessions import SessionStore


def test_create_and_append():
    store = SessionStore()
    session = store.create(title="Pricing", team_id="team_x")
    store.add_message(session.id, ChatMessage(role="user", content="Hi"))
    assert store.get(session.id).messages[0].content == "Hi"
    assert store.get(session.id).team_id == "team_x"


def test_append_to_missing_session_raises():
    with pytest.raises(KeyError):
        SessionStore().add_message("session_missing", ChatMessage(role="user", content="x"))


def test_get_or_create_keeps_existing():
    store = SessionStore()
    first = store.get_or_create("session_a")
    store.add_message("session_a", ChatMessage(role="user", content="x"))
    assert store.get_or_create("session_a") is first
    assert len(first.messages) == 1


def test_list_most_recent_first():
    store = SessionStore()
    older = store.create(session_id="session_old")
    newer = store.create(session_id="session_new")
    store.add_message(older.id, ChatMessage(role="user", content="bump"))
    assert [s.id for s in store.list()][0] == older.id
    assert {s.id for s in store.list()} == {older.id, newer.id}


def test_json_round_trip(tmp_path):
    store = SessionStore(directory=tmp_path)
    session = store.create(title="Board prep")
    store.add_message(
        session.id,
        ChatMessage(
            role="user",
            content="See deck",
            attachments=[
                Attachment(kind="file", url="https://f.example.com/d.pdf", name="d.pdf",
                           content_type="application/pdf", size_bytes=1200)
            ],
        ),
    )
    store.add_message(
        session.id,
        ChatMessage(role="assistant", content="Looks good.", agent="chief_of_staff",
                    consulted_agents=["gtm"], plan_text="Plan: I'll consult gtm, then respond."),
    )

    reloaded = SessionStore(directory=tmp_path).get(session.id)
    user, assistant = reloaded.messages
    assert user.attachments[0].content_type == "application/pdf"
    assert user.attachments[0].size_bytes == 1200
    assert assistant.consulted_agents == ["gtm"]
    assert assistant.plan_text == "Plan: I'll consult gtm, then respond."


def test_delete(tmp_path):
    store = SessionStore(directory=tmp_path)
    session = store.create()
    assert store.delete(session.id)
    assert not (tmp_path / f"{session.id}.json").exists()
    assert not store.delete(session.id)
