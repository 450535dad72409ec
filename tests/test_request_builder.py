"""Tests for request construction."""

import json

from ass_chat.config import AssConfig
from ass_chat.llm.request_builder import build_headers, build_request
from ass_chat.types import Message

_MESSAGES = [
    Message("system", "be brief"),
    Message("user", "hi"),
    Message("assistant", "hello"),
    Message("user", "again"),
]


class TestHeaders:
    def test_no_key_no_auth(self):
        assert build_headers("") == {"Content-Type": "application/json"}

    def test_key_adds_bearer(self):
        headers = build_headers("sk-123")
        assert headers["Authorization"] == "Bearer sk-123"
        assert headers["Content-Type"] == "application/json"


class TestBuildRequest:
    def test_auth_header_depends_only_on_key(self):
        without = build_request(AssConfig(api_key=""), _MESSAGES)
        with_key = build_request(AssConfig(api_key="k"), _MESSAGES)
        assert "Authorization" not in without.headers
        assert with_key.headers["Authorization"] == "Bearer k"
        assert without.body == with_key.body
        assert without.url == with_key.url

    def test_body_shape_and_order(self):
        cfg = AssConfig(endpoint="http://backend/v1/chat/completions", model="m1")
        req = build_request(cfg, _MESSAGES, stream=True)
        body = json.loads(req.body)
        assert req.url == "http://backend/v1/chat/completions"
        assert req.streaming is True
        assert body == {
            "model": "m1",
            "messages": [
                {"role": "system", "content": "be brief"},
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "hello"},
                {"role": "user", "content": "again"},
            ],
            "stream": True,
        }

    def test_non_streaming_flag(self):
        req = build_request(AssConfig(), _MESSAGES, stream=False)
        assert req.streaming is False
        assert json.loads(req.body)["stream"] is False

    def test_deterministic(self):
        cfg = AssConfig(api_key="k", model="m")
        assert build_request(cfg, _MESSAGES) == build_request(cfg, _MESSAGES)

    def test_defaults(self):
        req = build_request(AssConfig(), [Message("user", "x")])
        assert req.url == "http://localhost:8080/v1/chat/completions"
        assert json.loads(req.body)["model"] == "ass-default"
