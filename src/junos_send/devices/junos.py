"""Junos session handler speaking NETCONF over SSH.

The transport is ncclient on top of paramiko. Every change-control step is
sent as a raw Junos RPC so the replies stay close to what the device
actually said:

- lock/unlock:   <lock-configuration/>, <unlock-configuration/>
- load:          <load-configuration action="set" format="text">
- validate:      <validate><source><candidate/></source></validate>
- diff:          <get-configuration compare="rollback" rollback="0" format="text"/>
- commit:        <commit-configuration><log>...</log></commit-configuration>
- discard:       <discard-changes/>
- operational:   <command format="ascii">...</command>
"""
import asyncio
import logging
from typing import Optional, Sequence
from xml.sax.saxutils import escape

import paramiko
from lxml import etree
from ncclient import manager, NCClientError
from ncclient.operations import RaiseMode, RPCError
from ncclient.transport.errors import AuthenticationError, SSHError
from ncclient.xml_ import to_ele

from .base import (
    NetworkSession,
    SessionConfig,
    Credentials,
    Operation,
    RemoteReply,
    OperationError,
    DeviceConnectionError,
    join_commands,
)
from ..utils.connection import with_retry, RETRYABLE_EXCEPTIONS
from ..utils.logging_config import timed

logger = logging.getLogger(__name__)

# Failures that may clear up on a second attempt
TRANSIENT_ERRORS = RETRYABLE_EXCEPTIONS + (SSHError, paramiko.SSHException)

LOCK_RPC = "<lock-configuration/>"
UNLOCK_RPC = "<unlock-configuration/>"
VALIDATE_RPC = "<validate><source><candidate/></source></validate>"
COMPARE_RPC = '<get-configuration compare="rollback" rollback="0" format="text"/>'
DISCARD_RPC = "<discard-changes/>"


def load_set_rpc(commands: Sequence[str]) -> str:
    """Build the load RPC staging commands in set format."""
    return (
        '<load-configuration action="set" format="text">'
        f"<configuration-set>{escape(join_commands(commands))}</configuration-set>"
        "</load-configuration>"
    )


def commit_rpc(comment: str) -> str:
    """Build a commit RPC carrying an audit comment."""
    if not comment:
        return "<commit-configuration/>"
    return f"<commit-configuration><log>{escape(comment)}</log></commit-configuration>"


def command_rpc(text: str) -> str:
    """Build an operational command RPC with plain-text output."""
    return f'<command format="ascii">{escape(text)}</command>'


def reply_payload(reply_xml: str) -> str:
    """Return the content of an <rpc-reply> without the envelope."""
    try:
        root = etree.fromstring(reply_xml.encode("utf-8"))
    except etree.XMLSyntaxError:
        return reply_xml

    parts = [root.text or ""]
    for child in root:
        # tostring includes the child's tail text
        parts.append(etree.tostring(child, encoding="unicode"))
    return "".join(parts).strip()


class JunosNetconfSession(NetworkSession):
    """NETCONF session to a Junos device."""

    def __init__(self, config: SessionConfig, credentials: Credentials):
        super().__init__(config, credentials)
        self._connection: Optional[manager.Manager] = None

    def _connect(self) -> manager.Manager:
        conn = manager.connect(
            host=self.host,
            port=self.config.port,
            username=self.credentials.username,
            password=self.credentials.password,
            timeout=self.config.timeout,
            hostkey_verify=self.config.hostkey_verify,
            allow_agent=False,
            look_for_keys=False,
            device_params={"name": "junos"},
        )
        # Warnings (e.g. "statement not found" on delete) must not fail a step
        conn.raise_mode = RaiseMode.ERRORS
        return conn

    @timed("netconf_open")
    async def open(self) -> None:
        """Connect to the device, retrying transient socket failures."""
        if self._connection is not None:
            return

        logger.info(f"Connecting to {self.host}:{self.config.port}")
        loop = asyncio.get_running_loop()

        @with_retry(
            max_attempts=self.config.retries,
            min_wait=self.config.retry_delay,
            max_wait=max(self.config.retry_delay, 10),
            exceptions=TRANSIENT_ERRORS,
        )
        async def _open() -> manager.Manager:
            return await loop.run_in_executor(None, self._connect)

        try:
            self._connection = await _open()
        except AuthenticationError as e:
            raise DeviceConnectionError(self.host, f"authentication failed: {e}") from e
        except (NCClientError, paramiko.SSHException, OSError, EOFError) as e:
            raise DeviceConnectionError(self.host, str(e) or type(e).__name__) from e

        logger.info(f"Connected to {self.host}")

    async def close(self) -> None:
        """Close the NETCONF session."""
        conn, self._connection = self._connection, None
        if conn is None:
            return

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, conn.close_session)
        except (NCClientError, OSError, EOFError) as e:
            # The device may already have dropped us; the handle is gone either way
            logger.debug(f"Error closing session to {self.host}: {e}")
        logger.debug(f"Disconnected from {self.host}")

    @timed("rpc")
    async def execute(self, operation: Operation, payload: str) -> RemoteReply:
        """Send one raw RPC and wrap its reply."""
        if self._connection is None:
            raise OperationError(operation, "session is not open")

        conn = self._connection
        loop = asyncio.get_running_loop()
        logger.debug(f"{self.host} >>> {operation.value}: {payload}")

        try:
            rpc = to_ele(payload)
        except (etree.XMLSyntaxError, ValueError) as e:
            # e.g. control characters in a command, which XML cannot carry
            raise OperationError(operation, f"cannot encode request: {e}") from e

        try:
            reply = await loop.run_in_executor(None, conn.dispatch, rpc)
        except RPCError as e:
            raise OperationError(operation, e.message or str(e)) from e
        except (NCClientError, OSError, EOFError) as e:
            raise OperationError(operation, str(e) or type(e).__name__) from e

        warnings = tuple(
            err.message or str(err)
            for err in getattr(reply, "errors", None) or []
            if getattr(err, "severity", "") == "warning"
        )
        return RemoteReply(
            operation=operation,
            data=reply_payload(reply.xml),
            warnings=warnings,
        )

    async def lock(self) -> RemoteReply:
        return await self.execute(Operation.LOCK, LOCK_RPC)

    async def load_set(self, commands: Sequence[str]) -> RemoteReply:
        return await self.execute(Operation.LOAD, load_set_rpc(commands))

    async def validate(self) -> RemoteReply:
        return await self.execute(Operation.VALIDATE, VALIDATE_RPC)

    async def compare(self) -> RemoteReply:
        return await self.execute(Operation.DIFF, COMPARE_RPC)

    async def commit(self, comment: str) -> RemoteReply:
        return await self.execute(Operation.COMMIT, commit_rpc(comment))

    async def discard(self) -> RemoteReply:
        return await self.execute(Operation.DISCARD, DISCARD_RPC)

    async def unlock(self) -> RemoteReply:
        return await self.execute(Operation.UNLOCK, UNLOCK_RPC)

    async def command(self, text: str) -> RemoteReply:
        return await self.execute(Operation.COMMAND, command_rpc(text))
