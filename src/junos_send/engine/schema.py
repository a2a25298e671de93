"""Schema definitions for the change-control engine."""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional


class Mode(str, Enum):
    """What a run does to the devices."""
    CONFIGURATION = "configuration"
    OPERATIONAL = "operational"

    @classmethod
    def from_flag(cls, flag: str) -> "Mode":
        """Map the short CLI flag (c/o) to a mode."""
        flags = {"c": cls.CONFIGURATION, "o": cls.OPERATIONAL}
        try:
            return flags[flag.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown mode flag: {flag!r} (expected 'c' or 'o')") from None


# Allowed leading verbs per mode
CONFIG_VERBS = frozenset({"set", "delete", "activate", "deactivate"})
OPERATIONAL_VERBS = frozenset({"show"})

ALLOWED_VERBS = {
    Mode.CONFIGURATION: CONFIG_VERBS,
    Mode.OPERATIONAL: OPERATIONAL_VERBS,
}

# Where text meant for the operator goes
DisplayFn = Callable[[str], None]

# Written between a command and its output in capture files
OUTPUT_SEPARATOR = "=" * 46


class Step(str, Enum):
    """Workflow step an error is attributed to."""
    CONNECT = "connect"
    LOCK = "lock"
    LOAD = "load"
    VALIDATE = "validate"
    DIFF = "diff"
    CONFIRM = "confirm"
    COMMIT = "commit"
    DISCARD = "discard"
    UNLOCK = "unlock"
    COMMAND = "command"
    PERSIST = "persist"


@dataclass(frozen=True)
class StepError:
    """One error recorded while processing a device."""
    step: Step
    message: str
    fatal: bool = False

    def to_dict(self) -> dict:
        return {"step": self.step.value, "message": self.message, "fatal": self.fatal}


@dataclass
class CommandOutput:
    """Stripped output of one operational command."""
    command: str
    output: str


@dataclass
class DeviceOutcome:
    """Result of processing one device."""
    device: str
    mode: Mode
    connected: bool = False
    committed: bool = False
    discarded: bool = False
    diff: str = ""
    errors: list[StepError] = field(default_factory=list)
    outputs: list[CommandOutput] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        """True when the device could not be processed at all."""
        return any(e.fatal for e in self.errors)

    def record(self, step: Step, message: str, fatal: bool = False) -> StepError:
        error = StepError(step=step, message=message, fatal=fatal)
        self.errors.append(error)
        return error

    def errors_for(self, step: Step) -> list[StepError]:
        return [e for e in self.errors if e.step == step]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "device": self.device,
            "mode": self.mode.value,
            "connected": self.connected,
            "failed": self.failed,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.mode == Mode.CONFIGURATION:
            data["committed"] = self.committed
            data["discarded"] = self.discarded
            data["diff"] = self.diff
        else:
            data["commands_run"] = len(self.outputs)
        return data


@dataclass
class RunOptions:
    """Options for one fleet run."""
    show_diff: bool = True
    save_outputs: bool = False
    output_root: Path = field(default_factory=lambda: Path("."))
    separator: str = OUTPUT_SEPARATOR
    # Seconds to wait for the commit decision; None waits forever
    confirm_timeout: Optional[float] = None
    discard_attempts: int = 1


@dataclass
class RunSummary:
    """Totals over a fleet run."""
    total: int = 0
    failed: int = 0
    committed: int = 0
    discarded: int = 0
    with_warnings: int = 0

    def to_dict(self) -> dict:
        return {
            "total_devices": self.total,
            "failed": self.failed,
            "committed": self.committed,
            "discarded": self.discarded,
            "with_warnings": self.with_warnings,
        }


def summarize(outcomes: list[DeviceOutcome]) -> RunSummary:
    """Aggregate per-device outcomes."""
    return RunSummary(
        total=len(outcomes),
        failed=sum(1 for o in outcomes if o.failed),
        committed=sum(1 for o in outcomes if o.committed),
        discarded=sum(1 for o in outcomes if o.discarded),
        with_warnings=sum(1 for o in outcomes if o.errors and not o.failed),
    )
