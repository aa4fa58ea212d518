"""
Tests for the intake relay (POST an order, get the queued message back).

The broker is replaced by FakePublisher from conftest, so nothing here needs
a running RabbitMQ.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from pika.exceptions import AMQPConnectionError

from order_relay import config
from order_relay.broker import OrderPublisher
from order_relay.intake_service import app as intake
from tests.conftest import FakePublisher

ROUTE = config.RELAY_ROUTE
INVALID = "Invalid request: Id and Name are required"


def place_order(client, payload):
    r = client.post(ROUTE, json=payload)
    return r.status_code, r.get_json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.get_json()["status"] == "ok"


def test_valid_order_publishes_once(client, publisher):
    code, body = place_order(client, {"Id": "ORD-12345", "Name": "Laptop Pro X1"})

    assert code == 200
    assert body["success"] is True
    assert body["queueName"] == "orders"
    assert body["transactionId"] == "ORD-12345"
    assert body["productName"] == "Laptop Pro X1"
    assert body["message"] == "Message successfully sent to queue"

    assert len(publisher.published) == 1
    sent = publisher.published[0]
    assert sent.transaction_id == "ORD-12345"
    assert sent.product_name == "Laptop Pro X1"
    assert body["messageId"] == sent.message_id


@pytest.mark.parametrize("payload", [
    {"id": "a", "name": "b"},
    {"ID": "a", "NAME": "b"},
    {"iD": "a", "nAmE": "b", "extra": 1},
])
def test_keys_are_case_insensitive(client, publisher, payload):
    code, body = place_order(client, payload)
    assert code == 200
    assert body["transactionId"] == "a"
    assert body["productName"] == "b"
    assert len(publisher.published) == 1


@pytest.mark.parametrize("payload", [
    {"Id": "", "Name": "X"},
    {"Id": "ORD-1", "Name": ""},
    {"Id": None, "Name": "X"},
    {"Name": "X"},
    {"Id": "ORD-1"},
    {},
    {"Id": 123, "Name": "X"},
    ["ORD-1", "X"],
    "ORD-1",
])
def test_invalid_order_is_rejected(client, publisher, payload):
    code, body = place_order(client, payload)
    assert code == 400
    assert body == {"success": False, "error": INVALID}
    assert publisher.published == []


def test_non_json_body_is_rejected(client, publisher):
    r = client.post(ROUTE, data="THIS IS NOT JSON {{{", content_type="application/json")
    assert r.status_code == 400
    assert r.get_json()["error"] == INVALID
    assert publisher.published == []


def test_repeat_orders_get_distinct_message_ids(client, publisher):
    _, first = place_order(client, {"Id": "ORD-1", "Name": "Widget"})
    _, second = place_order(client, {"Id": "ORD-1", "Name": "Widget"})

    assert first["messageId"] != second["messageId"]
    assert len(publisher.published) == 2
    assert publisher.published[0].message_id != publisher.published[1].message_id


def test_created_at_is_now(client, publisher):
    before = datetime.now(timezone.utc)
    place_order(client, {"Id": "ORD-1", "Name": "Widget"})
    after = datetime.now(timezone.utc)

    created = publisher.published[0].created_at
    assert created.tzinfo is not None
    assert before - timedelta(seconds=1) <= created <= after + timedelta(seconds=1)


def test_created_at_in_response_is_iso8601(client, publisher):
    _, body = place_order(client, {"Id": "ORD-1", "Name": "Widget"})
    parsed = datetime.fromisoformat(body["createdAt"].replace("Z", "+00:00"))
    assert parsed == publisher.published[0].created_at


def test_transport_failure_returns_503(broken_client):
    code, body = place_order(broken_client, {"Id": "ORD-1", "Name": "Widget"})
    assert code == 503
    assert body == {"success": False, "error": "Failed to queue order", "details": "broker_unavailable"}


def test_unexpected_failure_returns_500_without_details(client):
    intake.publisher = FakePublisher(fail_with=KeyError("secret internals"))
    code, body = place_order(client, {"Id": "ORD-1", "Name": "Widget"})
    assert code == 500
    assert body == {"success": False, "error": "Internal server error"}
    assert "secret" not in str(body)


def test_get_publisher_builds_from_config_once(monkeypatch):
    monkeypatch.setattr(intake, "publisher", None)
    monkeypatch.delenv("ORDERS_BROKER_URL", raising=False)
    monkeypatch.setenv("ORDERS_BROKER_HOST", "broker.internal")

    first = intake.get_publisher()
    second = intake.get_publisher()

    assert first is second
    assert first.parameters.host == "broker.internal"
    assert first.queue_name == config.ORDERS_QUEUE


@patch("order_relay.broker.pika.BlockingConnection")
def test_unreachable_broker_returns_503(mock_conn_class, client):
    mock_conn_class.side_effect = AMQPConnectionError("connection refused")
    intake.publisher = OrderPublisher(object())

    code, body = place_order(client, {"Id": "ORD-1", "Name": "Widget"})

    assert code == 503
    assert body == {"success": False, "error": "Failed to queue order", "details": "broker_unavailable"}
    mock_conn_class.assert_called_once()
