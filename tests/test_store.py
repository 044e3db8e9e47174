import json
import os
from pathlib import Path

import pytest

from hearthmind.agents.base import Message, ToolCall
from hearthmind.agents.errors import StoreUnavailable
from hearthmind.agents.store import MessageStore, list_sessions, pending_tool_call, sessions_dir


class TestAppendAndLoad:
    """Append-only persistence."""

    def test_missing_file_is_empty_session(self, tmp_path: Path) -> None:
        store = MessageStore(tmp_path / "new.json")
        assert store.load_all() == []

    def test_order_preserved_across_batches(self, store) -> None:
        store.append([Message.user("one")])
        store.append([Message.assistant("two"), Message.user("three")])
        store.append([Message.assistant("four")])

        contents = [m.content for m in store.load_all()]
        assert contents == ["one", "two", "three", "four"]

    def test_reload_from_new_instance(self, store) -> None:
        store.append([Message.user("hello")])
        again = MessageStore(store.path)
        assert again.load_all() == [Message.user("hello")]

    def test_metadata_assigned_and_stripped(self, store) -> None:
        added = store.append([Message.user("a"), Message.user("b")])
        assert len({r.id for r in added}) == 2
        assert all(r.created_at for r in added)

        loaded = store.load_all()
        assert all(isinstance(m, Message) for m in loaded)
        assert not hasattr(loaded[0], "created_at")

    def test_record_format_on_disk(self, store) -> None:
        call = ToolCall(id="c1", name="get_weather", arguments='{"location": "Oslo"}')
        store.append([Message.user("weather?"), Message(role="assistant", tool_calls=(call,))])
        store.append([Message.tool_result("c1", '{"temperature": 2.0}')])

        raw = json.loads(store.path.read_text(encoding="utf-8"))
        assert raw["session_id"] == "test-session"
        records = raw["messages"]
        assert set(records[0]) == {"id", "role", "content", "tool_calls", "tool_call_id", "created_at"}
        assert records[1]["tool_calls"] == [{"id": "c1", "name": "get_weather", "arguments": '{"location": "Oslo"}'}]
        assert records[2]["role"] == "tool"
        assert records[2]["tool_call_id"] == "c1"

    def test_tool_result_without_request_rejected(self, store) -> None:
        store.append([Message.user("hi")])
        with pytest.raises(ValueError):
            store.append([Message.tool_result("nope", "x")])
        assert len(store.load_all()) == 1

    def test_failed_batch_leaves_file_untouched(self, store) -> None:
        store.append([Message.user("hi")])
        before = store.path.read_text(encoding="utf-8")
        with pytest.raises(ValueError):
            store.append([Message.assistant("ok"), Message.tool_result("missing", "x")])
        assert store.path.read_text(encoding="utf-8") == before

    def test_no_temp_files_left_behind(self, store) -> None:
        store.append([Message.user("hi")])
        assert [p.name for p in store.path.parent.iterdir()] == ["test-session.json"]


class TestCorruption:
    """Unreadable state is reported, never silently recovered."""

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "s.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreUnavailable):
            MessageStore(path).load_all()

    def test_wrong_shape(self, tmp_path: Path) -> None:
        path = tmp_path / "s.json"
        path.write_text(json.dumps({"messages": [{"role": "robot"}]}), encoding="utf-8")
        with pytest.raises(StoreUnavailable):
            MessageStore(path).load_all()

    def test_not_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "s.json"
        path.write_bytes(b"\xff\xfe\x00garbage")
        with pytest.raises(StoreUnavailable):
            MessageStore(path).load_all()

    @pytest.mark.parametrize("messages", [["oops"], [42], "oops", {"role": "user"}])
    def test_records_not_objects(self, tmp_path: Path, messages) -> None:
        path = tmp_path / "s.json"
        path.write_text(json.dumps({"messages": messages}), encoding="utf-8")
        with pytest.raises(StoreUnavailable):
            MessageStore(path).records()

    def test_orphan_tool_result_on_disk(self, tmp_path: Path) -> None:
        path = tmp_path / "s.json"
        record = {
            "id": "r1",
            "role": "tool",
            "content": "{}",
            "tool_calls": [],
            "tool_call_id": "never-issued",
            "created_at": "2025-01-01T00:00:00+00:00",
        }
        path.write_text(json.dumps({"messages": [record]}), encoding="utf-8")
        with pytest.raises(StoreUnavailable):
            MessageStore(path).load_all()

    def test_append_to_corrupt_store_fails(self, tmp_path: Path) -> None:
        path = tmp_path / "s.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(StoreUnavailable):
            MessageStore(path).append([Message.user("hi")])

    def test_directory_in_place_of_file(self, tmp_path: Path) -> None:
        path = tmp_path / "s.json"
        path.mkdir()
        with pytest.raises(StoreUnavailable):
            MessageStore(path).load_all()


class TestSessions:
    """Session discovery."""

    def test_create_avoids_collisions(self, tmp_path: Path) -> None:
        a = MessageStore.create(tmp_path)
        a.append([Message.user("x")])
        b = MessageStore.create(tmp_path)
        assert a.path != b.path

    def test_latest_prefers_most_recently_modified(self, tmp_path: Path) -> None:
        MessageStore(tmp_path / "20240101-000000.json").append([Message.user("old")])
        MessageStore(tmp_path / "20250101-000000.json").append([Message.user("new")])
        os.utime(tmp_path / "20240101-000000.json", (1_000_000, 1_000_000))
        os.utime(tmp_path / "20250101-000000.json", (2_000_000, 2_000_000))
        assert MessageStore.latest(tmp_path).session_id == "20250101-000000"
        assert [p.stem for p in list_sessions(tmp_path)] == ["20250101-000000", "20240101-000000"]

    def test_named_session_does_not_shadow_newer_ones(self, tmp_path: Path) -> None:
        named = MessageStore(tmp_path / "work.json")
        named.append([Message.user("named")])
        stamped = MessageStore(tmp_path / "20250101-000000-2.json")
        stamped.append([Message.user("stamped")])
        MessageStore(tmp_path / "20250101-000000.json").append([Message.user("first")])
        os.utime(named.path, (1_000_000, 1_000_000))
        os.utime(tmp_path / "20250101-000000.json", (2_000_000, 2_000_000))
        os.utime(stamped.path, (3_000_000, 3_000_000))

        assert MessageStore.latest(tmp_path).session_id == "20250101-000000-2"
        assert [p.stem for p in list_sessions(tmp_path)][-1] == "work"

    def test_open_by_id_and_path(self, tmp_path: Path) -> None:
        MessageStore(tmp_path / "abc.json").append([Message.user("x")])
        assert MessageStore.open(tmp_path, "abc").load_all() == [Message.user("x")]
        assert MessageStore.open(tmp_path, str(tmp_path / "abc.json")).session_id == "abc"

    def test_sessions_dir_override(self, tmp_path: Path) -> None:
        class Cfg:
            sessions_dir = str(tmp_path / "custom")

        assert sessions_dir(Cfg()) == tmp_path / "custom"
        assert (tmp_path / "custom").is_dir()

    def test_sessions_dir_defaults_to_cwd_outside_git(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert sessions_dir(None) == tmp_path / ".hearthmind" / "sessions"


class TestPendingToolCall:
    def test_detects_trailing_request(self) -> None:
        call = ToolCall(id="c1", name="get_weather", arguments="{}")
        msgs = [Message.user("weather in Oslo"), Message(role="assistant", tool_calls=(call,))]
        assert pending_tool_call(msgs) == (call, "weather in Oslo")

    def test_none_when_answered(self) -> None:
        call = ToolCall(id="c1", name="get_weather")
        msgs = [
            Message.user("q"),
            Message(role="assistant", tool_calls=(call,)),
            Message.tool_result("c1", "{}"),
        ]
        assert pending_tool_call(msgs) is None
        assert pending_tool_call([]) is None
