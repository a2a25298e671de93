"""Shared fixtures: an in-memory session standing in for a Junos device."""
import pytest

from junos_send.config.work_order import WorkOrder
from junos_send.devices.base import (
    Credentials,
    DeviceConnectionError,
    NetworkSession,
    Operation,
    OperationError,
    RemoteReply,
    SessionConfig,
)

DIFF_REPLY = (
    "<configuration-information><configuration-output>\n"
    "[edit system]\n"
    "+  ntp server 10.1.1.1;\n"
    "</configuration-output></configuration-information>"
)


class FakeSession(NetworkSession):
    """Scripted session that records every operation it is asked to do.

    Args:
        host: Device address
        fail: Operation -> error message, raised on every call
        flaky: Operation -> number of calls that fail before one succeeds
        fail_open: Raise DeviceConnectionError from open()
        outputs: Operational command -> reply payload
        warnings: Operation -> device warnings attached to the reply
    """

    def __init__(
        self,
        host="10.0.0.1",
        fail=None,
        flaky=None,
        fail_open=False,
        outputs=None,
        warnings=None,
        diff_reply=DIFF_REPLY,
    ):
        super().__init__(SessionConfig(host=host), Credentials("admin", "secret"))
        self.fail = dict(fail or {})
        self.flaky = dict(flaky or {})
        self.fail_open = fail_open
        self.outputs = dict(outputs or {})
        self.warnings = dict(warnings or {})
        self.diff_reply = diff_reply
        self.calls = []
        self.payloads = []
        self.opened = 0
        self.closed = 0

    async def open(self):
        self.opened += 1
        if self.fail_open:
            raise DeviceConnectionError(self.host, "connection refused")
        self._connection = object()

    async def close(self):
        self.closed += 1
        self._connection = None

    async def execute(self, operation, payload):
        self.calls.append(operation)
        self.payloads.append(payload)

        if operation in self.fail:
            raise OperationError(operation, self.fail[operation])
        if self.flaky.get(operation, 0) > 0:
            self.flaky[operation] -= 1
            raise OperationError(operation, "transient failure")

        data = ""
        if operation == Operation.DIFF:
            data = self.diff_reply
        elif operation == Operation.COMMAND:
            if payload not in self.outputs:
                raise OperationError(operation, f"syntax error: {payload}")
            data = self.outputs[payload]
        return RemoteReply(operation, data, tuple(self.warnings.get(operation, ())))

    async def lock(self):
        return await self.execute(Operation.LOCK, "lock")

    async def load_set(self, commands):
        return await self.execute(Operation.LOAD, "\n".join(commands))

    async def validate(self):
        return await self.execute(Operation.VALIDATE, "validate")

    async def compare(self):
        return await self.execute(Operation.DIFF, "compare")

    async def commit(self, comment):
        return await self.execute(Operation.COMMIT, comment)

    async def discard(self):
        return await self.execute(Operation.DISCARD, "discard")

    async def unlock(self):
        return await self.execute(Operation.UNLOCK, "unlock")

    async def command(self, text):
        return await self.execute(Operation.COMMAND, text)


@pytest.fixture
def credentials():
    return Credentials("admin", "secret")


@pytest.fixture
def config_order():
    """Configuration work order for one device."""
    return WorkOrder(
        description="Add NTP server",
        refID="CHG-1001",
        deviceIPs=["10.0.0.1"],
        cmdList=["set system ntp server 10.1.1.1", "delete system ntp server 10.9.9.9"],
    )


@pytest.fixture
def show_order():
    """Operational work order for one device."""
    return WorkOrder(
        description="Health check",
        refID="run-42",
        deviceIPs=["10.0.0.1"],
        cmdList=["show version", "show chassis alarms"],
    )
