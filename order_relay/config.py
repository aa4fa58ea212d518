"""
Environment configuration for the intake relay and the consumer.

Everything is controlled by environment variables so both services run the
same way locally, in docker compose or on a VM.

Broker connection is resolved in one place (resolve_connection), in order:
  1. ORDERS_BROKER_URL   - an amqp:// or amqps:// connection string
  2. ORDERS_BROKER_HOST  - a broker host, with optional port/vhost/user/password;
                           without a user, pika's default credentials are used
  3. FALLBACK_BROKER_HOST - hardcoded, same ambient credentials
"""

import logging
import os

import pika

logger = logging.getLogger("order_relay.config")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# queue topology
ORDERS_QUEUE = os.getenv("ORDERS_QUEUE", "orders")
ORDERS_DLX = f"{ORDERS_QUEUE}_dlx"
ORDERS_DLQ = f"{ORDERS_QUEUE}_dlq"

# intake relay
RELAY_ROUTE = os.getenv("RELAY_ROUTE", "/api/ProcessOrderTrigger")
RELAY_HOST = os.getenv("RELAY_HOST", "0.0.0.0")
RELAY_PORT = int(os.getenv("RELAY_PORT", "5000"))

# consumer startup wait
CONSUMER_CONNECT_ATTEMPTS = int(os.getenv("CONSUMER_CONNECT_ATTEMPTS", "15"))
CONSUMER_CONNECT_DELAY = float(os.getenv("CONSUMER_CONNECT_DELAY", "2"))

# how many accepted messages the consumer keeps in memory
CONSUMER_RECORD_LIMIT = int(os.getenv("CONSUMER_RECORD_LIMIT", "1000"))

FALLBACK_BROKER_HOST = "rabbitmq"
DEFAULT_BROKER_PORT = 5672

MODE_CONNECTION_STRING = "connection_string"
MODE_NAMESPACE = "namespace"
MODE_FALLBACK = "fallback"


def _is_amqp_url(value):
    return value.startswith("amqp://") or value.startswith("amqps://")


def _blocked_timeout(environ):
    return float(environ.get("ORDERS_BROKER_BLOCKED_TIMEOUT") or 30)


def _host_parameters(environ, host):
    port = int(environ.get("ORDERS_BROKER_PORT") or DEFAULT_BROKER_PORT)
    vhost = environ.get("ORDERS_BROKER_VHOST") or "/"
    user = environ.get("ORDERS_BROKER_USER")
    password = environ.get("ORDERS_BROKER_PASSWORD", "")
    blocked_timeout = _blocked_timeout(environ)

    kwargs = dict(
        host=host,
        port=port,
        virtual_host=vhost,
        connection_attempts=1,
        blocked_connection_timeout=blocked_timeout,
    )
    if user:
        kwargs["credentials"] = pika.PlainCredentials(user, password)
    return pika.ConnectionParameters(**kwargs)


def resolve_connection(environ=None):
    """Pick broker connection parameters from the environment.

    Returns (mode, parameters) where mode is one of "connection_string",
    "namespace" or "fallback". The parameters are for a single connection
    attempt; callers that want to wait for the broker loop themselves.
    """
    if environ is None:
        environ = os.environ

    url = (environ.get("ORDERS_BROKER_URL") or "").strip()
    host = (environ.get("ORDERS_BROKER_HOST") or "").strip()

    if url and _is_amqp_url(url):
        logger.info("using broker connection string")
        params = pika.URLParameters(url)
        params.connection_attempts = 1
        # a blocked_connection_timeout in the url query takes precedence
        if params.blocked_connection_timeout is None:
            params.blocked_connection_timeout = _blocked_timeout(environ)
        return MODE_CONNECTION_STRING, params

    if url:
        logger.warning("ORDERS_BROKER_URL is not an amqp url, ignoring it")

    if host:
        logger.info(f"using broker host {host} with ambient credentials")
        return MODE_NAMESPACE, _host_parameters(environ, host)

    logger.warning(f"no broker configured, falling back to {FALLBACK_BROKER_HOST}")
    return MODE_FALLBACK, _host_parameters(environ, FALLBACK_BROKER_HOST)
