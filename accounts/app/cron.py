"""Periodic publisher of reset-window sweeps.

Run with ``taskiq scheduler app.cron:scheduler``.
"""

from faststream.nats import NatsBroker
from accounts.config import nats_url
from accounts.events import RESET_WINDOW_SWEEP_SUBJECT, ResetWindowSweepDueV1, jstream
from taskiq.schedule_sources import LabelScheduleSource
from taskiq_faststream import BrokerWrapper, StreamScheduler
from uuid import uuid4
from datetime import datetime

broker = NatsBroker(nats_url)

# wrap FastStream object
taskiq_broker = BrokerWrapper(broker)


async def reset_window_sweep_due() -> ResetWindowSweepDueV1:
    return ResetWindowSweepDueV1(
        id=str(uuid4()),
        time=datetime.now(),
    )


taskiq_broker.task(
    message=reset_window_sweep_due,
    subject=RESET_WINDOW_SWEEP_SUBJECT,
    schedule=[
        {
            "cron": "*/10 * * * *",
        }
    ],
    stream=jstream.name,
)

scheduler = StreamScheduler(
    broker=taskiq_broker,
    sources=[LabelScheduleSource(taskiq_broker)],
)
