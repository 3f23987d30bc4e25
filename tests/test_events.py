import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from faststream.nats import NatsBroker, TestNatsBroker

from accounts import events
from accounts.events import NatsEventPublisher, jstream


def test_event_subjects():
    account = MagicMock(
        public_id="acc-1", fullname="Ana Santos", email="ana@example.com", role="staff"
    )
    assert events.subject_of(events.account_created(account)) == (
        "accounts-streams.AccountCreated.v1"
    )
    assert events.subject_of(events.account_deleted("acc-1")) == (
        "accounts-streams.AccountDeleted.v1"
    )
    assert events.RESET_WINDOW_SWEEP_SUBJECT == "cron.ResetWindowSweepDue.v1"


def test_account_updated_payload():
    account = MagicMock(
        public_id="acc-1",
        role="admin",
        is_verified=True,
        is_temporary_password=False,
        valid_id="https://storage.test/validid/validIds/1_id.pdf",
        resume=None,
    )

    payload = json.loads(events.account_updated(account).model_dump_json())

    assert payload["name"] == "AccountUpdated"
    assert payload["version"] == "v1"
    assert payload["producer"] == "accounts"
    assert payload["data"] == {
        "account_public_id": "acc-1",
        "role": "admin",
        "is_verified": True,
        "is_temporary_password": False,
        "valid_id": "https://storage.test/validid/validIds/1_id.pdf",
        "resume": None,
    }


@pytest.mark.asyncio
async def test_nats_publisher_publishes_to_account_stream():
    broker = NatsBroker()

    @broker.subscriber("accounts-streams.AccountDeleted.v1", stream=jstream)
    async def handler(msg: dict):
        pass

    async with TestNatsBroker(broker) as test_broker:
        await NatsEventPublisher(test_broker).publish(events.account_deleted("acc-1"))

        handler.mock.assert_called_once()


@pytest.mark.asyncio
async def test_nats_publisher_swallows_broker_errors():
    broker = MagicMock()
    broker.publish = AsyncMock(side_effect=ConnectionError("nats is down"))

    await NatsEventPublisher(broker).publish(events.account_deleted("acc-1"))

    broker.publish.assert_awaited_once()
