"""Pre-flight classification of command verbs.

Runs once over the whole work order, before any device is contacted.
"""
import logging
from typing import Iterable

from .schema import ALLOWED_VERBS, Mode

logger = logging.getLogger(__name__)


class ClassificationError(Exception):
    """Raised when commands do not start with a verb allowed in the mode."""

    def __init__(self, mode: Mode, invalid: list[str]):
        self.mode = mode
        self.invalid = invalid
        super().__init__(
            f"{len(invalid)} command(s) not allowed in {mode.value} mode: "
            + "; ".join(repr(c) for c in invalid)
        )


def leading_verb(command: str) -> str:
    """First whitespace-delimited token, or "" for a blank command."""
    parts = command.split(maxsplit=1)
    return parts[0] if parts else ""


def invalid_commands(commands: Iterable[str], mode: Mode) -> list[str]:
    """Return every command whose verb is not allowed in the mode.

    Matching is exact and case-sensitive; an empty result means the whole
    list is acceptable.
    """
    allowed = ALLOWED_VERBS[mode]
    return [c for c in commands if leading_verb(c) not in allowed]


def ensure_valid(commands: Iterable[str], mode: Mode) -> None:
    """Raise ClassificationError listing all disallowed commands."""
    invalid = invalid_commands(commands, mode)
    if invalid:
        raise ClassificationError(mode, invalid)
    logger.debug(f"All commands valid for {mode.value} mode")
