"""Session handlers for remotely managed devices."""
from .base import (
    NetworkSession,
    SessionConfig,
    Credentials,
    Operation,
    RemoteReply,
    DeviceConnectionError,
    OperationError,
)
from .junos import JunosNetconfSession

__all__ = [
    "NetworkSession",
    "SessionConfig",
    "Credentials",
    "Operation",
    "RemoteReply",
    "DeviceConnectionError",
    "OperationError",
    "JunosNetconfSession",
    "SESSION_TYPES",
    "create_session",
]

# Session type registry
SESSION_TYPES = {
    "junos": JunosNetconfSession,
}


def create_session(
    config: SessionConfig,
    credentials: Credentials,
    platform: str = "junos",
) -> NetworkSession:
    """Factory function to create an unopened session for one device."""
    platform = platform.lower()
    if platform not in SESSION_TYPES:
        raise ValueError(f"Unknown platform: {platform}")

    return SESSION_TYPES[platform](config, credentials)
