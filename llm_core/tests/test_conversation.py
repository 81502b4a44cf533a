import pytest

from llm_core.domain.conversation import ConversationBuffer, Err, Ok, next_turns
from llm_core.domain.exceptions import EmptyResponseError, InvalidArgumentError, NetworkError
from llm_core.domain.models import ContentPart, SamplingParams, Turn


def test_turn_text_joins_text_parts():
    turn = Turn.assistant((ContentPart(text="a"), ContentPart(text="b")))
    assert turn.text == "a\nb"
    assert Turn.user("hi").parts == (ContentPart(text="hi"),)


def test_turn_rejects_unknown_role():
    with pytest.raises(InvalidArgumentError):
        Turn(role="tool", content="x")


def test_sampling_merge_prefers_override():
    base = SamplingParams(temperature=0.7, max_tokens=100)
    merged = base.merged(SamplingParams(temperature=0.1))
    assert merged.temperature == 0.1
    assert merged.max_tokens == 100
    assert base.temperature == 0.7


def test_set_system_instruction_is_idempotent():
    buf = ConversationBuffer()
    buf.append_user("hello")
    buf.set_system_instruction("be brief")
    buf.set_system_instruction("be brief")
    turns = buf.snapshot()
    assert [t.role for t in turns] == ["system", "user"]
    assert turns[0].text == "be brief"


def test_set_system_instruction_empty_removes_it():
    buf = ConversationBuffer()
    buf.set_system_instruction("sys")
    buf.set_system_instruction("")
    assert len(buf) == 0
    assert buf.system_instruction is None


def test_snapshot_is_detached():
    buf = ConversationBuffer()
    buf.append_user("one")
    snap = buf.snapshot()
    buf.append_user("two")
    assert len(snap) == 1


def test_clear_keep_system():
    buf = ConversationBuffer()
    buf.set_system_instruction("sys")
    buf.append_user("u1")
    buf.append_assistant(Turn.assistant("a1"))
    buf.append_user("u2")
    buf.clear(keep_system=True)
    assert [t.role for t in buf.snapshot()] == ["system"]
    buf.clear(keep_system=False)
    assert buf.snapshot() == ()


def test_remove_by_identity_only_when_last():
    buf = ConversationBuffer()
    pending = buf.append_user("hello")
    buf.append_assistant(Turn.assistant("late reply"))
    assert buf.remove_by_identity(pending) is False
    assert len(buf) == 2


def test_remove_by_identity_ignores_equal_but_distinct_turn():
    buf = ConversationBuffer()
    buf.append_user("hello")
    assert buf.remove_by_identity(Turn.user("hello")) is False
    assert len(buf) == 1


def test_append_assistant_rejects_user_turn():
    buf = ConversationBuffer()
    with pytest.raises(InvalidArgumentError):
        buf.append_assistant(Turn.user("nope"))


def test_replace_moves_system_first_and_rejects_duplicates():
    buf = ConversationBuffer()
    buf.replace([Turn.user("u"), Turn.system("s")])
    assert [t.role for t in buf.snapshot()] == ["system", "user"]
    with pytest.raises(InvalidArgumentError):
        buf.replace([Turn.system("a"), Turn.system("b")])


def test_next_turns_is_pure():
    pending = Turn.user("hi")
    turns = (pending,)
    err = Err(NetworkError(code="NETWORK_ERROR", message="down"), rollback=True)
    assert next_turns(turns, pending, err) == ()
    assert turns == (pending,)
    assert next_turns(turns, pending, Err(EmptyResponseError("empty"), rollback=False)) == (pending,)


def test_settle_commits_reply():
    buf = ConversationBuffer()
    pending = buf.append_user("hi")
    text = buf.settle(pending, Ok(reply=Turn.assistant("hello")))
    assert text == "hello"
    assert [t.role for t in buf.snapshot()] == ["user", "assistant"]


def test_settle_rolls_back_and_raises():
    buf = ConversationBuffer()
    buf.set_system_instruction("sys")
    before = buf.snapshot()
    pending = buf.append_user("hi")
    with pytest.raises(NetworkError):
        buf.settle(pending, Err(NetworkError(code="NETWORK_ERROR", message="down"), rollback=True))
    assert buf.snapshot() == before
