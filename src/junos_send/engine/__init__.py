"""Change-control engine for pushing work orders to a device fleet.

Usage:
    from junos_send.engine import FleetRunner, Mode, RunOptions

    runner = FleetRunner(settings, confirm=ask_operator)
    outcomes = await runner.run(work_order, Mode.CONFIGURATION, credentials)
"""

from .schema import (
    Mode,
    Step,
    StepError,
    CommandOutput,
    DeviceOutcome,
    RunOptions,
    RunSummary,
    summarize,
    CONFIG_VERBS,
    OPERATIONAL_VERBS,
    OUTPUT_SEPARATOR,
)
from .classifier import ClassificationError, invalid_commands, ensure_valid
from .diff import DiffParseError, extract_diff, strip_output
from .output_store import OutputStore, PersistenceError, output_filename
from .config_workflow import ConfigWorkflow
from .op_workflow import OperationalWorkflow
from .fleet import FleetRunner

__all__ = [
    # Driver
    "FleetRunner",
    # Schema
    "Mode",
    "Step",
    "StepError",
    "CommandOutput",
    "DeviceOutcome",
    "RunOptions",
    "RunSummary",
    "summarize",
    "CONFIG_VERBS",
    "OPERATIONAL_VERBS",
    "OUTPUT_SEPARATOR",
    # Classifier
    "ClassificationError",
    "invalid_commands",
    "ensure_valid",
    # Reply handling
    "DiffParseError",
    "extract_diff",
    "strip_output",
    # Output capture
    "OutputStore",
    "PersistenceError",
    "output_filename",
    # Workflows
    "ConfigWorkflow",
    "OperationalWorkflow",
]
