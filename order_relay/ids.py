"""
ID generator shared by the intake relay and anything else that needs to
stamp a queue message.

generate_message_id() - Produces a hyphenated UUID4 string used as both the
                        message body's messageId and the AMQP message_id
                        property, so the two can be matched by a consumer.
"""

import uuid


def generate_message_id():
    """Generate a unique message ID (new value on every call)."""
    return str(uuid.uuid4())


if __name__ == "__main__":
    print("Sample message ID:", generate_message_id())
