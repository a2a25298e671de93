"""Base session abstraction for remotely managed network devices."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

logger = logging.getLogger(__name__)

# Line separator used when a command set is staged as one change
COMMAND_SEPARATOR = "\n"


class Operation(str, Enum):
    """Purpose of a single remote operation."""
    LOCK = "lock"
    LOAD = "load"
    VALIDATE = "validate"
    DIFF = "diff"
    COMMIT = "commit"
    DISCARD = "discard"
    UNLOCK = "unlock"
    COMMAND = "command"


class DeviceConnectionError(Exception):
    """Raised when a device cannot be reached or refuses the credentials."""

    def __init__(self, host: str, message: str):
        self.host = host
        self.message = message
        super().__init__(f"Cannot connect to {host}: {message}")


class OperationError(Exception):
    """Raised when one remote operation fails."""

    def __init__(self, operation: Operation, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation.value} failed: {message}")


@dataclass(frozen=True)
class Credentials:
    """Username/password pair shared by every device in one run."""
    username: str
    password: str = field(repr=False)


@dataclass
class SessionConfig:
    """Connection settings for one device session."""
    host: str
    port: int = 830
    timeout: int = 30
    retries: int = 3
    retry_delay: float = 2
    hostkey_verify: bool = False


@dataclass(frozen=True)
class RemoteReply:
    """Structured reply to one remote operation.

    Replies are consumed by the step that asked for them and never kept.
    """
    operation: Operation
    data: str = ""
    warnings: tuple[str, ...] = ()


def join_commands(commands: Sequence[str]) -> str:
    """Join an ordered command set into one staged change."""
    return COMMAND_SEPARATOR.join(commands)


class NetworkSession(ABC):
    """One authenticated management session to exactly one device.

    Sessions are opened and closed by the workflow that owns them:

        async with create_session(config, credentials) as session:
            await session.lock()
    """

    def __init__(self, config: SessionConfig, credentials: Credentials):
        self.config = config
        self.credentials = credentials
        self._connection: Any = None

    @property
    def device_id(self) -> str:
        return self.config.host

    @property
    def host(self) -> str:
        return self.config.host

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    # Connection management
    @abstractmethod
    async def open(self) -> None:
        """Establish the session.

        Raises:
            DeviceConnectionError: device unreachable or authentication failed
        """

    @abstractmethod
    async def close(self) -> None:
        """Close the session. Safe to call more than once."""

    # Remote execution
    @abstractmethod
    async def execute(self, operation: Operation, payload: str) -> RemoteReply:
        """Send one raw operation and return its reply.

        Raises:
            OperationError: the device rejected the operation or the
                session dropped
        """

    # Change-control primitives
    @abstractmethod
    async def lock(self) -> RemoteReply:
        """Take the exclusive configuration lock."""

    @abstractmethod
    async def load_set(self, commands: Sequence[str]) -> RemoteReply:
        """Stage an ordered set of commands as one uncommitted change."""

    @abstractmethod
    async def validate(self) -> RemoteReply:
        """Validate the staged candidate."""

    @abstractmethod
    async def compare(self) -> RemoteReply:
        """Compare the candidate against the running configuration."""

    @abstractmethod
    async def commit(self, comment: str) -> RemoteReply:
        """Commit the candidate with an audit comment."""

    @abstractmethod
    async def discard(self) -> RemoteReply:
        """Throw the candidate away."""

    @abstractmethod
    async def unlock(self) -> RemoteReply:
        """Release the configuration lock."""

    @abstractmethod
    async def command(self, text: str) -> RemoteReply:
        """Run one read-only operational command."""

    # Context manager support
    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
