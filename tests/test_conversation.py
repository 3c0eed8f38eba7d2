import json

import pytest

from src.completion import CompletionError
from src.config import SESSION_TTL_SECONDS
from src.conversation import (
    ConversationManager,
    InvalidMessage,
    Message,
    SessionRecord,
    append_turn,
    merge_system_prompt,
    parse_record,
    validate_message,
)
from src.kv_store import MemoryStore
from src.prompt_store import PromptStore

from .conftest import FakeClock, FakeCompletion

SID = "3f2b8a4e-1c9d-4e57-9a0b-6d2f1e8c7b31"


def _msgs(*pairs):
    return [Message(role=r, content=c) for r, c in pairs]


# ── merge_system_prompt ─────────────────────────────────────────────────────

def test_merge_inserts_system_message_when_missing():
    history = _msgs(("user", "hi"), ("assistant", "hello"))
    merged = merge_system_prompt(history, "Be kind")
    assert merged == _msgs(("system", "Be kind"), ("user", "hi"), ("assistant", "hello"))


def test_merge_replaces_and_moves_existing_system_message_to_front():
    history = _msgs(("user", "hi"), ("system", "old"), ("assistant", "hello"))
    merged = merge_system_prompt(history, "new")
    assert merged[0] == Message("system", "new")
    assert merged[1:] == _msgs(("user", "hi"), ("assistant", "hello"))


def test_merge_collapses_duplicate_system_messages():
    history = _msgs(
        ("system", "a"), ("user", "1"), ("system", "b"),
        ("assistant", "2"), ("system", "c"),
    )
    merged = merge_system_prompt(history, "only")
    assert [m.role for m in merged].count("system") == 1
    assert merged == _msgs(("system", "only"), ("user", "1"), ("assistant", "2"))


def test_merge_is_idempotent():
    history = _msgs(("system", "x"), ("user", "hi"), ("system", "y"), ("assistant", "yo"))
    once = merge_system_prompt(history, "Be terse")
    twice = merge_system_prompt(once, "Be terse")
    assert twice == once


def test_merge_does_not_mutate_input():
    history = _msgs(("user", "hi"), ("system", "old"))
    snapshot = list(history)
    merge_system_prompt(history, "new")
    assert history == snapshot


def test_merge_on_empty_history():
    assert merge_system_prompt([], "p") == [Message("system", "p")]


# ── append_turn / validation ────────────────────────────────────────────────

def test_append_turn_preserves_prior_messages():
    history = _msgs(("system", "p"), ("user", "hi"))
    appended = append_turn(history, "assistant", "hello")
    assert appended[:2] == history
    assert appended[-1] == Message("assistant", "hello")
    assert len(history) == 2


def test_append_turn_rejects_unknown_role():
    with pytest.raises(ValueError):
        append_turn([], "tool", "x")


@pytest.mark.parametrize("value", ["", "   \n", None, 42])
def test_validate_message_rejects_blank_or_non_string(value):
    with pytest.raises(InvalidMessage) as exc:
        validate_message(value)
    assert exc.value.code == "message_required"


def test_validate_message_strips():
    assert validate_message("  hi  ") == "hi"


# ── parse_record ────────────────────────────────────────────────────────────

def test_parse_record_absent_is_fresh():
    record = parse_record(None)
    assert record.history == []
    assert record.created_at > 0


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '"text"'])
def test_parse_record_repairs_unreadable_payloads(raw):
    assert parse_record(raw).history == []


def test_parse_record_repairs_non_list_history_and_keeps_timestamp():
    record = parse_record(json.dumps({"createdAt": 1234, "history": {"role": "user"}}))
    assert record.history == []
    assert record.created_at == 1234


def test_parse_record_drops_malformed_entries():
    raw = json.dumps({
        "createdAt": 1,
        "history": [
            {"role": "system", "content": "p"},
            "garbage",
            {"role": "robot", "content": "x"},
            {"role": "user"},
            {"role": "user", "content": "hi"},
        ],
    })
    assert parse_record(raw).history == _msgs(("system", "p"), ("user", "hi"))


def test_record_serializes_to_stored_shape():
    record = SessionRecord(created_at=99, history=_msgs(("system", "p")))
    assert json.loads(record.to_json()) == {
        "createdAt": 99,
        "history": [{"role": "system", "content": "p"}],
    }


# ── ConversationManager ─────────────────────────────────────────────────────

def test_first_chat_builds_system_user_assistant(manager, prompts, completion):
    prompts.set("Be kind")
    reply = manager.chat(SID, "hi")

    assert reply == completion.reply
    assert manager.load_or_create(SID).history == _msgs(
        ("system", "Be kind"), ("user", "hi"), ("assistant", completion.reply),
    )


def test_completion_receives_full_ordered_history(manager, prompts, completion):
    prompts.set("Be kind")
    manager.chat(SID, "hi")
    manager.chat(SID, "what about ginger?")

    sent = completion.calls[-1]
    assert sent[0] == Message("system", "Be kind")
    assert [m.role for m in sent] == ["system", "user", "assistant", "user"]
    assert sent[-1] == Message("user", "what about ginger?")


def test_prompt_change_mid_conversation_applies_on_next_chat(manager, prompts, completion):
    prompts.set("Be kind")
    manager.chat(SID, "hi")
    before = manager.load_or_create(SID).history

    prompts.set("Be terse")
    manager.chat(SID, "more")
    after = manager.load_or_create(SID).history

    assert after[0] == Message("system", "Be terse")
    assert after[1:len(before)] == before[1:]
    assert len(after) == len(before) + 2
    assert after[-2:] == _msgs(("user", "more"), ("assistant", completion.reply))


def test_update_prompt_syncs_callers_session_immediately(manager, prompts):
    other = "9d0e7c1a-2b3f-4a5d-8e6f-7a8b9c0d1e2f"
    prompts.set("Be kind")
    manager.chat(SID, "hi")
    manager.chat(other, "hello")

    manager.update_prompt(SID, "  Be terse  ")

    assert prompts.get() == "Be terse"
    assert manager.load_or_create(SID).history[0] == Message("system", "Be terse")
    # Other sessions pick the change up lazily
    assert manager.load_or_create(other).history[0] == Message("system", "Be kind")
    manager.chat(other, "again")
    assert manager.load_or_create(other).history[0] == Message("system", "Be terse")


def test_update_prompt_for_new_session_creates_record(manager):
    manager.update_prompt(SID, "Be brief")
    assert manager.load_or_create(SID).history == [Message("system", "Be brief")]


def test_failed_completion_keeps_user_message(manager, prompts, completion):
    prompts.set("Be kind")
    completion.fail = True

    with pytest.raises(CompletionError):
        manager.chat(SID, "hi")

    assert manager.load_or_create(SID).history == _msgs(("system", "Be kind"), ("user", "hi"))

    completion.fail = False
    manager.chat(SID, "still there?")
    assert [m.content for m in completion.calls[-1]] == ["Be kind", "hi", "still there?"]


def test_chat_repairs_malformed_stored_record(store, manager, prompts):
    store.set(manager.session_key(SID), json.dumps({"createdAt": 5, "history": "oops"}))
    prompts.set("Be kind")

    manager.chat(SID, "hi")

    assert [m.role for m in manager.load_or_create(SID).history] == ["system", "user", "assistant"]


def test_chat_refreshes_timestamp(store, manager):
    store.set(manager.session_key(SID), json.dumps({"createdAt": 5, "history": []}))
    manager.chat(SID, "hi")
    assert manager.load_or_create(SID).created_at > 5


def test_chat_rejects_blank_message_without_touching_store(store, manager):
    with pytest.raises(InvalidMessage):
        manager.chat(SID, "   ")
    assert not store.exists(manager.session_key(SID))


def test_session_expiry_slides_on_every_write():
    clock = FakeClock()
    store = MemoryStore(clock=clock)
    manager = ConversationManager(store, PromptStore(store), FakeCompletion())

    manager.chat(SID, "hi")
    clock.advance(SESSION_TTL_SECONDS - 10)
    manager.chat(SID, "still here")
    clock.advance(SESSION_TTL_SECONDS - 10)
    assert len(manager.load_or_create(SID).history) == 5

    clock.advance(20)
    assert manager.load_or_create(SID).history == []


@pytest.mark.parametrize("created_at", ["Infinity", "-Infinity", "NaN", "1e400"])
def test_parse_record_repairs_non_finite_timestamp(created_at):
    record = parse_record('{"createdAt": %s, "history": [{"role": "user", "content": "hi"}]}' % created_at)
    assert record.created_at > 0
    assert record.history == _msgs(("user", "hi"))


def test_parse_record_repairs_deeply_nested_json():
    raw = '{"createdAt": 1, "history": ' + "[" * 100_000 + "]" * 100_000 + "}"
    assert parse_record(raw).history == []


@pytest.mark.parametrize("created_at", ["Infinity", "NaN", "1e400"])
def test_chat_recovers_from_non_finite_timestamp(store, manager, completion, created_at):
    store.set(
        manager.session_key(SID),
        '{"createdAt": %s, "history": [{"role": "user", "content": "hi"}]}' % created_at,
    )

    assert manager.chat(SID, "again") == completion.reply

    stored = json.loads(store.get(manager.session_key(SID)))
    assert isinstance(stored["createdAt"], int)
    assert [m["content"] for m in stored["history"]][1:] == ["hi", "again", completion.reply]
