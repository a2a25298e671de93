"""Work-order loading and validation.

A work order file is JSON or YAML:

```json
{
  "description": "Add NTP servers",
  "refID": "CHG-1234",
  "deviceIPs": ["10.0.0.1", "2001:db8::1"],
  "cmdList": ["set system ntp server 10.1.1.1"]
}
```
"""
import ipaddress
import json
import logging
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class WorkOrderError(Exception):
    """Raised when a work order file cannot be read or is invalid."""

    def __init__(self, message: str, problems: Optional[list[str]] = None):
        self.message = message
        self.problems = problems or []
        super().__init__(message)

    def __str__(self) -> str:
        if not self.problems:
            return self.message
        return self.message + "\n" + "\n".join(f"\t{p}" for p in self.problems)


def invalid_addresses(addresses: list[str]) -> list[str]:
    """Return every entry that is not an IPv4 or IPv6 literal."""
    bad = []
    for address in addresses:
        try:
            ipaddress.ip_address(address)
        except ValueError:
            bad.append(address)
    return bad


class WorkOrder(BaseModel):
    """What to send, and to which devices. Immutable once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    description: str = ""
    reference_id: str = Field(alias="refID", min_length=1)
    device_addresses: tuple[str, ...] = Field(alias="deviceIPs", min_length=1)
    commands: tuple[str, ...] = Field(alias="cmdList")

    @field_validator("device_addresses")
    @classmethod
    def check_addresses(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        value = tuple(a.strip() for a in value)
        bad = invalid_addresses(list(value))
        if bad:
            raise ValueError(f"not IP address literals: {', '.join(bad)}")
        return value

    @field_validator("reference_id")
    @classmethod
    def check_reference(cls, value: str) -> str:
        # Used as a directory name for captured output
        if "/" in value or "\\" in value or value in (".", ".."):
            raise ValueError("must be usable as a directory name")
        return value


def parse_work_order(data: dict) -> WorkOrder:
    """Build a WorkOrder from already-decoded data."""
    if not isinstance(data, dict):
        raise WorkOrderError("Work order must be a mapping with description, refID, deviceIPs and cmdList")

    try:
        return WorkOrder.model_validate(data)
    except ValidationError as e:
        problems = []
        for err in e.errors():
            location = ".".join(str(part) for part in err["loc"]) or "work order"
            problems.append(f"{location}: {err['msg']}")
        raise WorkOrderError("There was a problem with the work order, please check:", problems) from e


def load_work_order(path: Union[str, Path]) -> WorkOrder:
    """Read and validate a work order file.

    Files ending in .json are read as JSON, anything else as YAML.

    Raises:
        WorkOrderError: missing file, unreadable content or invalid fields
    """
    path = Path(path).expanduser()
    if not path.is_file():
        raise WorkOrderError(f"Work order file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise WorkOrderError(f"Could not read {path}, is it valid JSON/YAML? {e}") from e

    work_order = parse_work_order(data)
    logger.debug(
        f"Loaded work order {work_order.reference_id}: "
        f"{len(work_order.device_addresses)} device(s), {len(work_order.commands)} command(s)"
    )
    return work_order
