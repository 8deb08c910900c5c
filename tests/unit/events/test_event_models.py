"""
Unit tests for the proxy broadcast message model.
"""

import json

import pytest
from pydantic import ValidationError

from packstore.events import ProxyHandler, ProxyMessage, ProxyMessageType


class TestProxyMessage:
    """Test message validation and wire serialization."""

    def test_create_with_python_names(self):
        message = ProxyMessage(
            handler_name=ProxyHandler.STORE,
            type=ProxyMessageType.REQUEST,
            args={"data": {"x": 1}, "requestId": "r1"},
            sender_id="member-1",
        )

        assert message.request_id == "r1"
        assert message.handler_name is ProxyHandler.STORE

    def test_wire_shape_uses_camel_case(self):
        message = ProxyMessage(
            handler_name="delete",
            type="resolve",
            args={"requestId": "r2", "deleted": True},
        )

        assert message.to_wire() == {
            "handlerName": "delete",
            "type": "resolve",
            "args": {"requestId": "r2", "deleted": True},
        }

    def test_parse_from_wire(self):
        raw = '{"handlerName": "store", "type": "request", "args": {"requestId": "r3"}, "senderId": "u"}'
        message = ProxyMessage.model_validate(json.loads(raw))

        assert message.type == ProxyMessageType.REQUEST
        assert message.sender_id == "u"
        assert json.loads(message.to_json())["handlerName"] == "store"

    def test_unknown_handler_rejected(self):
        with pytest.raises(ValidationError):
            ProxyMessage(handler_name="update", type="request")

    def test_missing_request_id(self):
        message = ProxyMessage(handler_name="store", type="request")
        assert message.request_id is None
