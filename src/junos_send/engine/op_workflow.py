"""Read-only workflow for one device in operational mode."""
import logging
from typing import Optional

from ..config.work_order import WorkOrder
from ..devices.base import NetworkSession, OperationError
from .diff import strip_output
from .output_store import OutputStore, PersistenceError
from .schema import CommandOutput, DeviceOutcome, DisplayFn, Mode, Step

logger = logging.getLogger(__name__)


class OperationalWorkflow:
    """Run every command of the work order and capture the output."""

    def __init__(
        self,
        work_order: WorkOrder,
        store: Optional[OutputStore] = None,
        display: Optional[DisplayFn] = print,
    ):
        """
        Args:
            work_order: Validated work order (commands already classified)
            store: Output capture; None disables saving to files
            display: Where command output is shown; None to suppress
        """
        self.work_order = work_order
        self.store = store
        self.display = display

    async def run(self, session: NetworkSession) -> DeviceOutcome:
        """Send each command in order; one failure never stops the rest."""
        outcome = DeviceOutcome(
            device=session.host,
            mode=Mode.OPERATIONAL,
            connected=True,
        )
        written = False

        for command in self.work_order.commands:
            try:
                reply = await session.command(command)
            except OperationError as e:
                self._warn(outcome, Step.COMMAND, f"'{command}' failed, check the syntax: {e.message}")
                continue

            output = strip_output(reply.data)
            outcome.outputs.append(CommandOutput(command=command, output=output))
            if self.display is not None:
                self.display(f"{command}\n{output}")

            if self.store is None:
                continue
            try:
                self.store.append(outcome.device, command, output)
                written = True
            except PersistenceError as e:
                self._warn(outcome, Step.PERSIST, f"Output of '{command}' not saved: {e}")

        if written:
            logger.info(f"Outputs written to: {self.store.path_for(outcome.device)}")

        return outcome

    @staticmethod
    def _warn(outcome: DeviceOutcome, step: Step, message: str) -> None:
        outcome.record(step, message)
        logger.warning(f"{outcome.device}: {message}")
