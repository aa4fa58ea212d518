import logging

from flask import Flask, request, jsonify
from pydantic import ValidationError

from order_relay import config
from order_relay.broker import OrderPublisher, PublishError
from order_relay.models import OrderRequest, QueueOrderMessage

app = Flask(__name__)
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("intake_service")

INVALID_REQUEST = "Invalid request: Id and Name are required"

# shared across requests; assign an already-built publisher to override
publisher = None


def get_publisher():
    global publisher
    if publisher is not None:
        return publisher
    mode, params = config.resolve_connection()
    publisher = OrderPublisher(params, queue_name=config.ORDERS_QUEUE)
    logger.info(f"publisher ready (mode={mode}, queue={config.ORDERS_QUEUE})")
    return publisher


@app.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "service": "intake_service", "queue": config.ORDERS_QUEUE})


@app.route(config.RELAY_ROUTE, methods=["POST"])
def process_order():
    logger.info("processing order request...")
    data = request.get_json(force=True, silent=True)

    try:
        order = OrderRequest.model_validate(data)
    except ValidationError:
        logger.warning(INVALID_REQUEST)
        return jsonify({"success": False, "error": INVALID_REQUEST}), 400

    logger.info(f"[{order.id}] received order: name={order.name}")

    try:
        message = QueueOrderMessage.from_order(order)
        p = get_publisher()
        p.publish(message)
    except PublishError as e:
        logger.error(f"[{order.id}] failed to queue order: {e.reason} ({e.cause})")
        return jsonify({"success": False, "error": "Failed to queue order", "details": e.reason}), 503
    except Exception:
        logger.exception(f"[{order.id}] unexpected error while queueing order")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    body = {
        "success": True,
        "message": "Message successfully sent to queue",
        "queueName": p.queue_name,
    }
    body.update(message.to_dict())
    return jsonify(body), 200


def main():
    app.run(host=config.RELAY_HOST, port=config.RELAY_PORT, threaded=True)


if __name__ == "__main__":
    main()
