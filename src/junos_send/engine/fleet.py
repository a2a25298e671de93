"""Fleet driver: one workflow per device, strictly in work-order order.

Commands are classified once for the whole work order before any device is
contacted. After that nothing stops the run: a device that cannot be
reached is recorded as failed and the next device is processed.
"""
import logging
from typing import Callable, Optional

from ..config.settings import Settings
from ..config.work_order import WorkOrder
from ..devices import create_session
from ..devices.base import Credentials, DeviceConnectionError, NetworkSession, SessionConfig
from .classifier import ensure_valid
from .config_workflow import ConfigWorkflow, ConfirmFn
from .op_workflow import OperationalWorkflow
from .output_store import OutputStore, PersistenceError
from .schema import DeviceOutcome, DisplayFn, Mode, RunOptions, Step

logger = logging.getLogger(__name__)

SessionFactory = Callable[[SessionConfig, Credentials], NetworkSession]


class FleetRunner:
    """Run a work order against every device it names."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        confirm: Optional[ConfirmFn] = None,
        display: Optional[DisplayFn] = print,
        session_factory: SessionFactory = create_session,
    ):
        """
        Args:
            settings: Connection settings shared by all devices
            confirm: Commit decision hook, required in configuration mode
            display: Where diffs and command output are shown
            session_factory: Builds an unopened session for one device
        """
        self.settings = settings or Settings()
        self.confirm = confirm
        self.display = display
        self.session_factory = session_factory

    async def run(
        self,
        work_order: WorkOrder,
        mode: Mode,
        credentials: Credentials,
        options: Optional[RunOptions] = None,
    ) -> list[DeviceOutcome]:
        """Process every device and return one outcome per device.

        Raises:
            ClassificationError: a command is not allowed in the mode; no
                device has been contacted
        """
        options = options or RunOptions()
        ensure_valid(work_order.commands, mode)

        workflow = self._build_workflow(work_order, mode, credentials, options)

        outcomes = []
        total = len(work_order.device_addresses)
        for index, address in enumerate(work_order.device_addresses, start=1):
            logger.info(f"[{index}/{total}] {address}: {mode.value} mode")
            outcome = await self.run_device(address, mode, credentials, workflow)
            outcomes.append(outcome)

            if outcome.failed:
                logger.error(f"{address}: FAILED")
            elif outcome.errors:
                logger.warning(f"{address}: done with {len(outcome.errors)} warning(s)")
            else:
                logger.info(f"{address}: done")

        return outcomes

    async def run_device(
        self,
        address: str,
        mode: Mode,
        credentials: Credentials,
        workflow,
    ) -> DeviceOutcome:
        """Open a session, run the workflow, and always close the session."""
        session = self.session_factory(self.settings.session_config(address), credentials)

        try:
            await session.open()
        except DeviceConnectionError as e:
            logger.error(f"{address}: {e}")
            outcome = DeviceOutcome(device=address, mode=mode)
            outcome.record(Step.CONNECT, e.message, fatal=True)
            await session.close()
            return outcome

        try:
            return await workflow.run(session)
        finally:
            await session.close()

    def _build_workflow(
        self,
        work_order: WorkOrder,
        mode: Mode,
        credentials: Credentials,
        options: RunOptions,
    ):
        if mode == Mode.CONFIGURATION:
            if self.confirm is None:
                raise ValueError("Configuration mode needs a commit confirmation hook")
            return ConfigWorkflow(
                work_order,
                confirm=self.confirm,
                options=options,
                display=self.display,
                user=credentials.username,
            )

        store = None
        if options.save_outputs:
            store = OutputStore(options.output_root, work_order.reference_id, options.separator)
            try:
                store.prepare()
            except PersistenceError as e:
                # Each append will fail and be recorded per command
                logger.error(f"Output directory unavailable: {e}")
        return OperationalWorkflow(work_order, store=store, display=self.display)
