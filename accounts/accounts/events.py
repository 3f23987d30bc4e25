"""Account lifecycle events published to the ``accounts`` JetStream stream."""

import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from dataclasses_avroschema.pydantic import AvroBaseModel
from faststream.nats import NatsBroker, JStream

logger = logging.getLogger("accounts.events")

jstream = JStream(name="accounts", subjects=["accounts-streams.>", "cron.>"])


class Version(Enum):
    V1 = "v1"


class AccountCreatedName(Enum):
    ACCOUNTCREATED = "AccountCreated"


class AccountUpdatedName(Enum):
    ACCOUNTUPDATED = "AccountUpdated"


class AccountDeletedName(Enum):
    ACCOUNTDELETED = "AccountDeleted"


class ResetWindowSweepDueName(Enum):
    RESETWINDOWSWEEPDUE = "ResetWindowSweepDue"


class AccountCreatedData(AvroBaseModel):
    account_public_id: str
    fullname: str
    email: str
    role: str


class AccountCreatedV1(AvroBaseModel):
    id: str
    time: datetime
    name: AccountCreatedName = AccountCreatedName.ACCOUNTCREATED
    version: Version = Version.V1
    producer: str = "accounts"
    data: AccountCreatedData


class AccountUpdatedData(AvroBaseModel):
    account_public_id: str
    role: str
    is_verified: bool
    is_temporary_password: bool
    valid_id: Optional[str] = None
    resume: Optional[str] = None


class AccountUpdatedV1(AvroBaseModel):
    id: str
    time: datetime
    name: AccountUpdatedName = AccountUpdatedName.ACCOUNTUPDATED
    version: Version = Version.V1
    producer: str = "accounts"
    data: AccountUpdatedData


class AccountDeletedData(AvroBaseModel):
    account_public_id: str


class AccountDeletedV1(AvroBaseModel):
    id: str
    time: datetime
    name: AccountDeletedName = AccountDeletedName.ACCOUNTDELETED
    version: Version = Version.V1
    producer: str = "accounts"
    data: AccountDeletedData


class ResetWindowSweepDueV1(AvroBaseModel):
    id: str
    time: datetime
    name: ResetWindowSweepDueName = ResetWindowSweepDueName.RESETWINDOWSWEEPDUE
    version: Version = Version.V1
    producer: str = "cron"


RESET_WINDOW_SWEEP_SUBJECT = (
    f"cron.{ResetWindowSweepDueName.RESETWINDOWSWEEPDUE.value}.{Version.V1.value}"
)


def subject_of(msg: AvroBaseModel, prefix: str = "accounts-streams") -> str:
    return f"{prefix}.{msg.name.value}.{msg.version.value}"


def account_created(account) -> AccountCreatedV1:
    return AccountCreatedV1(
        id=str(uuid.uuid4()),
        time=datetime.now(),
        data=AccountCreatedData(
            account_public_id=account.public_id,
            fullname=account.fullname,
            email=account.email,
            role=account.role,
        ),
    )


def account_updated(account) -> AccountUpdatedV1:
    return AccountUpdatedV1(
        id=str(uuid.uuid4()),
        time=datetime.now(),
        data=AccountUpdatedData(
            account_public_id=account.public_id,
            role=account.role,
            is_verified=account.is_verified,
            is_temporary_password=account.is_temporary_password,
            valid_id=account.valid_id,
            resume=account.resume,
        ),
    )


def account_deleted(public_id: str) -> AccountDeletedV1:
    return AccountDeletedV1(
        id=str(uuid.uuid4()),
        time=datetime.now(),
        data=AccountDeletedData(account_public_id=public_id),
    )


class EventPublisher:
    async def publish(self, msg: AvroBaseModel) -> None:
        raise NotImplementedError


class NatsEventPublisher(EventPublisher):
    """Publishes events to JetStream. Failures are logged, never raised."""

    def __init__(self, broker: NatsBroker, stream: JStream = jstream):
        self.broker = broker
        self.stream = stream

    async def publish(self, msg: AvroBaseModel) -> None:
        subject = subject_of(msg)
        try:
            await self.broker.publish(
                msg.model_dump_json().encode(),
                subject,
                stream=self.stream.name,
            )
        except Exception as e:
            logger.error(f"Failed to publish {subject}: {e}", exc_info=True)
