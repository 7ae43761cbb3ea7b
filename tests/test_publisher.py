"""
Tests for best-effort event publishing
"""
import json
from unittest.mock import MagicMock

from pika.exceptions import AMQPConnectionError

import publisher
import settings


def test_disabled_events_do_not_touch_the_broker(monkeypatch):
    connect = MagicMock()
    monkeypatch.setattr(settings, "EVENTS_ENABLED", False)
    monkeypatch.setattr(publisher.pika, "BlockingConnection", connect)

    assert publisher.publish_event("PassCreated", {"passId": 1}) is False
    connect.assert_not_called()


def test_event_is_published_to_fanout_exchange(monkeypatch):
    conn = MagicMock()
    channel = conn.channel.return_value
    monkeypatch.setattr(settings, "EVENTS_ENABLED", True)
    monkeypatch.setattr(publisher.pika, "BlockingConnection", MagicMock(return_value=conn))

    assert publisher.publish_event("PassExpired", {"passId": 7}) is True

    channel.exchange_declare.assert_called_once_with(exchange="events", exchange_type="fanout", durable=True)
    body = channel.basic_publish.call_args.kwargs["body"]
    assert json.loads(body) == {"type": "PassExpired", "payload": {"passId": 7}}
    conn.close.assert_called_once()


def test_broker_outage_is_swallowed(monkeypatch):
    monkeypatch.setattr(settings, "EVENTS_ENABLED", True)
    monkeypatch.setattr(publisher.pika, "BlockingConnection", MagicMock(side_effect=AMQPConnectionError("down")))

    assert publisher.publish_event("PassRevoked", {"passId": 3}) is False
