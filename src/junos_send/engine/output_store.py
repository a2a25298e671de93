"""Capture of operational command output to per-device text files.

Layout:
    <root>/<reference id>/<device address with "." replaced by "_">.txt

Each command appends one block; files are never truncated between runs.
"""
import logging
from pathlib import Path

from .schema import OUTPUT_SEPARATOR

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when captured output cannot be written."""

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Cannot write {path}: {message}")


def output_filename(device: str) -> str:
    """File name for a device's captured output."""
    return device.replace(".", "_") + ".txt"


class OutputStore:
    """Appends command output blocks under a reference directory."""

    def __init__(self, root: Path, reference_id: str, separator: str = OUTPUT_SEPARATOR):
        self.directory = Path(root) / reference_id
        self.separator = separator

    def prepare(self) -> None:
        """Create the reference directory if it does not exist yet."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(self.directory, str(e)) from e

    def path_for(self, device: str) -> Path:
        return self.directory / output_filename(device)

    def append(self, device: str, command: str, output: str) -> Path:
        """Append one command block to the device's file."""
        path = self.path_for(device)
        block = f"{command}\n{self.separator}\n{output}"
        if not block.endswith("\n"):
            block += "\n"

        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(block)
        except OSError as e:
            raise PersistenceError(path, str(e)) from e

        logger.debug(f"Appended {len(output)} chars of '{command}' to {path}")
        return path
