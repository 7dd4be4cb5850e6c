"""Tests for line handling in the JSON-lines server loop."""

from __future__ import annotations

import json

import pytest

from pecstutor.server.__main__ import handle_line
from pecstutor.server.handler import ServerHandler


@pytest.fixture
def handler(app_settings, store):
    return ServerHandler(settings=app_settings, store=store)


async def _call(handler, line):
    return json.loads(await handle_line(handler, line))


class TestHandleLine:
    @pytest.mark.asyncio
    async def test_valid_request(self, handler):
        resp = await _call(handler, json.dumps({"id": 7, "method": "getSettings"}))
        assert resp["id"] == 7
        assert resp["result"]["windowSize"] == 10

    @pytest.mark.asyncio
    async def test_invalid_json(self, handler):
        resp = await _call(handler, "{not json")
        assert resp["id"] == 0
        assert resp["error"].startswith("Invalid JSON")

    @pytest.mark.asyncio
    async def test_non_object(self, handler):
        resp = await _call(handler, "[1, 2]")
        assert resp == {"id": 0, "error": "Request must be a JSON object"}

    @pytest.mark.asyncio
    async def test_missing_method(self, handler):
        resp = await _call(handler, json.dumps({"id": 3, "params": {}}))
        assert resp == {"id": 3, "error": "Missing method"}

    @pytest.mark.asyncio
    async def test_unknown_method(self, handler):
        resp = await _call(handler, json.dumps({"id": 4, "method": "fly"}))
        assert resp["id"] == 4
        assert "Unknown method" in resp["error"]

    @pytest.mark.asyncio
    async def test_handler_error_keeps_request_id(self, handler):
        resp = await _call(handler, json.dumps({"id": 5, "method": "getPerformance"}))
        assert resp == {"id": 5, "error": "No active session"}
