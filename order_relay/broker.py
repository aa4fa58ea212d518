import logging
import time

import pika
from pika.exceptions import (
    AMQPConnectionError,
    AMQPError,
    AuthenticationError,
    NackError,
    ProbableAccessDeniedError,
    ProbableAuthenticationError,
    UnroutableError,
)

from order_relay import config

logger = logging.getLogger("order_relay.broker")

REASON_AUTH_FAILED = "auth_failed"
REASON_BROKER_UNAVAILABLE = "broker_unavailable"
REASON_MESSAGE_REJECTED = "message_rejected"
REASON_TRANSPORT_ERROR = "transport_error"


class PublishError(Exception):
    """Publishing to the broker failed. `reason` is safe to hand back to callers."""

    def __init__(self, reason, cause=None):
        super().__init__(reason)
        self.reason = reason
        self.cause = cause


def reason_for(exc):
    # auth errors subclass AMQPConnectionError, check them first
    if isinstance(exc, (ProbableAuthenticationError, ProbableAccessDeniedError, AuthenticationError)):
        return REASON_AUTH_FAILED
    if isinstance(exc, AMQPConnectionError):
        return REASON_BROKER_UNAVAILABLE
    if isinstance(exc, (UnroutableError, NackError)):
        return REASON_MESSAGE_REJECTED
    return REASON_TRANSPORT_ERROR


def declare_order_queues(ch, queue_name):
    """Declare the main queue and its dead-letter exchange/queue."""
    dlx = f"{queue_name}_dlx"
    dlq = f"{queue_name}_dlq"

    ch.exchange_declare(exchange=dlx, exchange_type="fanout", durable=True)
    ch.queue_declare(queue=dlq, durable=True)
    ch.queue_bind(exchange=dlx, queue=dlq)

    ch.queue_declare(
        queue=queue_name,
        durable=True,
        arguments={
            "x-dead-letter-exchange": dlx,
        },
    )


class OrderPublisher:
    """Publishes QueueOrderMessages onto one queue.

    A single instance is shared by every request. It keeps only connection
    parameters and opens a connection per publish, since a pika
    BlockingConnection must not be shared across threads.
    """

    def __init__(self, parameters, queue_name=config.ORDERS_QUEUE):
        self.parameters = parameters
        self.queue_name = queue_name

    def publish(self, message):
        try:
            conn = pika.BlockingConnection(self.parameters)
        except AMQPError as e:
            raise PublishError(reason_for(e), e) from e

        try:
            ch = conn.channel()
            declare_order_queues(ch, self.queue_name)
            ch.confirm_delivery()
            ch.basic_publish(
                exchange="",
                routing_key=self.queue_name,
                body=message.to_json(),
                properties=pika.BasicProperties(
                    message_id=message.message_id,
                    content_type="application/json",
                    delivery_mode=2,
                ),
                mandatory=True,
            )
        except AMQPError as e:
            raise PublishError(reason_for(e), e) from e
        finally:
            close_quietly(conn)

        logger.info(f"[{message.transaction_id}] published to {self.queue_name} (message_id={message.message_id})")


def close_quietly(conn):
    """Close a connection, logging instead of raising broker errors from the close itself."""
    try:
        if conn.is_open:
            conn.close()
    except AMQPError as e:
        logger.warning(f"error closing broker connection: {e!r}")


def get_rabbit_connection(parameters, attempts=config.CONSUMER_CONNECT_ATTEMPTS,
                          delay=config.CONSUMER_CONNECT_DELAY):
    """Try connecting to the broker with retries."""
    for attempt in range(attempts):
        try:
            return pika.BlockingConnection(parameters)
        except (ProbableAuthenticationError, ProbableAccessDeniedError, AuthenticationError):
            # bad credentials will not fix themselves
            raise
        except AMQPConnectionError:
            logger.warning(f"broker not ready, retrying ({attempt+1}/{attempts})...")
            time.sleep(delay)
    raise RuntimeError("could not connect to broker")
