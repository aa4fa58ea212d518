import pytest

from order_relay.broker import PublishError
from order_relay.intake_service import app as intake


class FakePublisher:
    """Stands in for OrderPublisher; records what would have gone on the queue."""

    def __init__(self, queue_name="orders", fail_with=None):
        self.queue_name = queue_name
        self.fail_with = fail_with
        self.published = []

    def publish(self, message):
        if self.fail_with is not None:
            raise self.fail_with
        self.published.append(message)


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def client(publisher):
    intake.publisher = publisher
    intake.app.config["TESTING"] = True
    with intake.app.test_client() as c:
        yield c
    intake.publisher = None


@pytest.fixture
def broken_client():
    intake.publisher = FakePublisher(fail_with=PublishError("broker_unavailable"))
    intake.app.config["TESTING"] = True
    with intake.app.test_client() as c:
        yield c
    intake.publisher = None
