"""
Order relay: an HTTP intake service that forwards orders onto the "orders"
queue, and a consumer that records what arrives there.

intake_service/   - Flask relay, POST an order and get the queued message back
consumer_service/ - pika consumer, logs each message, dead-letters bad ones
"""

__version__ = "0.1.0"
