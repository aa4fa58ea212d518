import logging
from collections import deque

from order_relay import config
from order_relay.broker import close_quietly, declare_order_queues, get_rabbit_connection
from order_relay.models import QueueOrderMessage

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("consumer_service")

# most recent messages this worker has accepted, oldest dropped first
received_orders = deque(maxlen=config.CONSUMER_RECORD_LIMIT)


def on_order_message(ch, method, properties, body):
    """Log one delivered order. Malformed bodies are nacked without requeue (-> DLQ)."""
    try:
        message = QueueOrderMessage.from_json(body)
    except ValueError as e:
        logger.error(f"malformed message, sending to DLQ: {e} body={body[:200]!r}")
        ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
        return

    transport_id = getattr(properties, "message_id", None)
    if transport_id and transport_id != message.message_id:
        logger.warning(f"[{message.transaction_id}] transport message_id {transport_id} "
                       f"does not match body messageId {message.message_id}")

    logger.info(
        f"[{message.transaction_id}] order received: message_id={message.message_id} "
        f"product={message.product_name} created_at={message.created_at.isoformat()}"
    )
    received_orders.append(message)
    ch.basic_ack(delivery_tag=method.delivery_tag)


def main():
    mode, params = config.resolve_connection()
    logger.info(f"connecting to broker (mode={mode})")
    conn = get_rabbit_connection(params)
    ch = conn.channel()

    declare_order_queues(ch, config.ORDERS_QUEUE)

    ch.basic_qos(prefetch_count=1)
    ch.basic_consume(queue=config.ORDERS_QUEUE, on_message_callback=on_order_message)

    logger.info(f"consumer_service listening on '{config.ORDERS_QUEUE}' queue...")
    try:
        ch.start_consuming()
    except KeyboardInterrupt:
        logger.info("stopping consumer")
        ch.stop_consuming()
    finally:
        close_quietly(conn)


if __name__ == "__main__":
    main()
