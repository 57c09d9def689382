"""
Tests for upstream event filtering and rewriting.
"""

import json

import pytest

from gateway.normalizer import normalize_event, read_state_pairs
from gateway.parse_message import NormalizationError
from server.tcp_state import SessionState


def frame(t, d, s=5, op=0):
    return json.dumps({"op": op, "d": d, "s": s, "t": t}, separators=(",", ":"))


READY_PAYLOAD = {
    "v": 9,
    "user": {"id": "1000000000000000001", "username": "me"},
    "session_id": "abc",
    "read_state": {
        "version": 1,
        "partial": False,
        "entries": [
            {"id": "2000000000000000001", "last_message_id": "3000000000000000001", "mention_count": 0},
            {"id": "2000000000000000002", "mention_count": 0},
            {"id": "2000000000000000003", "last_message_id": 0},
            {"id": "2000000000000000004", "last_message_id": "3000000000000000004"},
        ],
    },
    "guilds": [],
}

MESSAGE = {
    "id": "4000000000000000001",
    "channel_id": "2000000000000000001",
    "content": "hi",
    "author": {"id": "1", "username": "u", "global_name": "U", "avatar": None},
    "type": 0,
}


def decode(lines):
    return [json.loads(line) for line in lines]


class TestReady:

    def test_ready_always_yields_compact_notice(self):
        state = SessionState(supported_events={"MESSAGE_CREATE"})
        out = decode(normalize_event(frame("READY", READY_PAYLOAD, s=1), state))
        assert out == [{"op": -1, "s": 1, "t": "J2ME_READY", "d": {"id": "1000000000000000001"}}]

    def test_ready_with_empty_filter_is_compact_only(self):
        out = decode(normalize_event(frame("READY", READY_PAYLOAD), SessionState()))
        assert [o["t"] for o in out] == ["J2ME_READY"]

    def test_read_states_skip_entries_without_last_read(self):
        state = SessionState(supported_events={"J2ME_READ_STATES"})
        out = decode(normalize_event(frame("READY", READY_PAYLOAD, s=1), state))
        assert [o["t"] for o in out] == ["J2ME_READY", "J2ME_READ_STATES"]
        assert out[1]["d"] == [
            "2000000000000000001", "3000000000000000001",
            "2000000000000000004", "3000000000000000004",
        ]
        assert out[1]["s"] == 1

    def test_full_ready_forwarded_when_requested(self):
        state = SessionState(supported_events={"J2ME_READ_STATES", "READY"})
        out = decode(normalize_event(frame("READY", READY_PAYLOAD, s=1), state))
        assert [o["t"] for o in out] == ["J2ME_READY", "J2ME_READ_STATES", "READY"]
        assert out[2] == {"op": -1, "s": 1, "t": "READY", "d": READY_PAYLOAD}

    def test_ready_without_user_raises(self):
        with pytest.raises(NormalizationError):
            normalize_event(frame("READY", {"read_state": []}), SessionState())

    def test_read_state_as_bare_list(self):
        ready = {"read_state": [{"id": "a", "last_message_id": "b"}, {"id": "c", "last_message_id": None}]}
        assert read_state_pairs(ready) == ["a", "b"]


class TestMessageEvents:

    @pytest.mark.parametrize("name", ["MESSAGE_CREATE", "MESSAGE_UPDATE"])
    def test_projected_when_marker_requested(self, name):
        state = SessionState(supported_events={"J2ME_" + name})
        out = decode(normalize_event(frame(name, MESSAGE, s=9), state))
        assert len(out) == 1
        assert out[0]["op"] == -1
        assert out[0]["s"] == 9
        assert out[0]["t"] == "J2ME_" + name
        assert out[0]["d"] == {
            "id": "4000000000000000001",
            "channel_id": "2000000000000000001",
            "author": {"id": "1", "avatar": None, "global_name": "U"},
            "content": "hi",
        }

    def test_dropped_without_marker(self):
        state = SessionState(supported_events={"TYPING_START"})
        assert normalize_event(frame("MESSAGE_CREATE", MESSAGE), state) == []

    def test_raw_when_plain_name_requested(self):
        state = SessionState(supported_events={"MESSAGE_CREATE"})
        raw = frame("MESSAGE_CREATE", MESSAGE)
        assert normalize_event(raw, state) == [raw]

    def test_raw_with_empty_filter(self):
        raw = frame("MESSAGE_UPDATE", MESSAGE)
        assert normalize_event(raw, SessionState()) == [raw]

    def test_guild_emoji_setting_used(self):
        msg = dict(MESSAGE, content="<:blob:123456789012345678>")
        state = SessionState(supported_events={"J2ME_MESSAGE_CREATE"}, show_guild_emoji=True)
        out = decode(normalize_event(frame("MESSAGE_CREATE", msg), state))
        assert out[0]["d"]["content"] == "<:blob:123456789012345678>"


class TestPassThrough:

    def test_event_in_filter_is_byte_identical(self):
        raw = '{"t":"TYPING_START","s":12,"op":0,"d":{"user_id":"1","emoji":"\U0001F600"}}'
        state = SessionState(supported_events={"TYPING_START"})
        assert normalize_event(raw, state) == [raw]

    def test_event_not_in_filter_dropped(self):
        state = SessionState(supported_events={"TYPING_START"})
        assert normalize_event(frame("PRESENCE_UPDATE", {"user": {"id": "1"}}), state) == []

    def test_empty_filter_forwards_everything(self):
        raw = frame("PRESENCE_UPDATE", {"user": {"id": "1"}})
        assert normalize_event(raw, SessionState()) == [raw]

    @pytest.mark.parametrize("raw", ['{"op":10,"d":{"heartbeat_interval":41250}}', '{"op":11}', '{"t":null,"s":null,"op":7,"d":null}'])
    def test_unnamed_frames_always_forwarded(self, raw):
        state = SessionState(supported_events={"TYPING_START"})
        assert normalize_event(raw, state) == [raw]

    @pytest.mark.parametrize("raw", ["not json", "[1,2]", ""])
    def test_undecodable_frames_dropped(self, raw):
        assert normalize_event(raw, SessionState()) == []

    def test_no_delimiter_in_output(self):
        state = SessionState(supported_events={"J2ME_MESSAGE_CREATE", "READY"})
        msg = dict(MESSAGE, content="a\nb\r\nc")
        lines = normalize_event(frame("MESSAGE_CREATE", msg), state)
        lines += normalize_event(frame("READY", READY_PAYLOAD), state)
        assert lines
        assert all("\n" not in line for line in lines)
