"""Change-control workflow for one device in configuration mode.

Steps, in order:
1. LOCK      - best effort; a failed lock is a warning and skips UNLOCK
2. LOAD      - stage the command set; failure ends the device here
3. VALIDATE  - warning on failure
4. DIFF      - warning on failure, the diff is then empty
5. CONFIRM   - operator decides commit or discard
6. COMMIT or DISCARD - failure leaves the candidate for manual cleanup
7. UNLOCK    - only if LOCK succeeded; warning on failure
"""
import asyncio
import inspect
import logging
import threading
from typing import Awaitable, Callable, Optional, Union

from ..config.work_order import WorkOrder
from ..devices.base import NetworkSession, OperationError, RemoteReply
from ..utils.audit_log import ChangeTracker
from ..utils.connection import with_retry
from .diff import DiffParseError, extract_diff
from .schema import DeviceOutcome, DisplayFn, Mode, RunOptions, Step

logger = logging.getLogger(__name__)

# (device, diff text) -> commit?
ConfirmFn = Callable[[str, str], Union[bool, Awaitable[bool]]]


def _in_daemon_thread(func: Callable, *args) -> "asyncio.Future":
    """Run a blocking prompt in a daemon thread.

    A prompt abandoned on timeout must not keep the process alive.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def _deliver(setter, value) -> None:
        if not future.done():
            setter(value)

    def worker() -> None:
        try:
            result = func(*args)
        except Exception as e:
            setter, value = future.set_exception, e
        else:
            setter, value = future.set_result, result
        try:
            loop.call_soon_threadsafe(_deliver, setter, value)
        except RuntimeError:
            # Loop closed: the run ended while the prompt was pending
            logger.debug("Late answer to an abandoned prompt ignored")

    threading.Thread(target=worker, name="confirm-prompt", daemon=True).start()
    return future


class ConfigWorkflow:
    """Drive lock → load → validate → diff → confirm → commit/discard → unlock."""

    def __init__(
        self,
        work_order: WorkOrder,
        confirm: ConfirmFn,
        options: Optional[RunOptions] = None,
        display: Optional[DisplayFn] = print,
        user: str = "unknown",
    ):
        """
        Args:
            work_order: Validated work order (commands already classified)
            confirm: Decision hook called with (device, diff); True commits
            options: Run options (diff display, confirm timeout, retries)
            display: Where the diff is shown; None to suppress
            user: Name recorded in the change audit log
        """
        self.work_order = work_order
        self.confirm = confirm
        self.options = options or RunOptions()
        self.display = display
        self.user = user
        # Blocking prompt still waiting for input after a timeout
        self._open_prompt: Optional[asyncio.Future] = None

    async def run(self, session: NetworkSession) -> DeviceOutcome:
        """Run the full workflow against an open session."""
        outcome = DeviceOutcome(
            device=session.host,
            mode=Mode.CONFIGURATION,
            connected=True,
        )
        tracker = ChangeTracker(session.host, self.work_order.reference_id, self.user)

        locked = await self._lock(session, outcome)
        try:
            if not await self._load(session, outcome):
                return outcome

            await self._validate(session, outcome)
            outcome.diff = await self._diff(session, outcome)

            if await self._confirm(outcome):
                await self._commit(session, outcome, tracker)
            else:
                await self._discard(session, outcome, tracker)
        finally:
            if locked:
                await self._unlock(session, outcome)

        return outcome

    # --- steps ---

    async def _lock(self, session: NetworkSession, outcome: DeviceOutcome) -> bool:
        try:
            reply = await session.lock()
        except OperationError as e:
            self._warn(
                outcome, Step.LOCK,
                f"Could not lock the configuration (is someone else editing?), "
                f"continuing without a lock: {e.message}",
            )
            return False
        self._log_device_warnings(outcome, reply)
        logger.debug(f"{outcome.device}: configuration locked")
        return True

    async def _load(self, session: NetworkSession, outcome: DeviceOutcome) -> bool:
        commands = self.work_order.commands
        try:
            reply = await session.load_set(commands)
        except OperationError as e:
            self._warn(
                outcome, Step.LOAD,
                f"Loading {len(commands)} command(s) failed, nothing was staged: {e.message}",
                fatal=True,
            )
            return False
        self._log_device_warnings(outcome, reply)
        logger.info(f"{outcome.device}: staged {len(commands)} command(s)")
        return True

    async def _validate(self, session: NetworkSession, outcome: DeviceOutcome) -> None:
        try:
            reply = await session.validate()
        except OperationError as e:
            self._warn(
                outcome, Step.VALIDATE,
                f"Candidate did not validate, committing may fail: {e.message}",
            )
            return
        self._log_device_warnings(outcome, reply)

    async def _diff(self, session: NetworkSession, outcome: DeviceOutcome) -> str:
        try:
            reply = await session.compare()
            diff = extract_diff(reply.data)
        except OperationError as e:
            self._warn(
                outcome, Step.DIFF,
                f"Changes could not be compared, check the device manually: {e.message}",
            )
            diff = ""
        except DiffParseError as e:
            self._warn(outcome, Step.DIFF, str(e))
            diff = ""

        if self.options.show_diff and self.display is not None:
            self.display(f"Config diff for {outcome.device}:\n{'=' * 42}\n{diff}")
        return diff

    async def _confirm(self, outcome: DeviceOutcome) -> bool:
        timeout = self.options.confirm_timeout

        if timeout is None:
            # Block until the operator answers
            decision = self.confirm(outcome.device, outcome.diff)
            if inspect.isawaitable(decision):
                decision = await decision
            return bool(decision)

        if inspect.iscoroutinefunction(self.confirm):
            pending = self.confirm(outcome.device, outcome.diff)
            prompt = None
        else:
            prompt = self._prompt_for(outcome.device, outcome.diff)
            # Shielded so a timeout leaves the prompt reading stdin
            pending = asyncio.shield(prompt)

        try:
            decision = bool(await asyncio.wait_for(pending, timeout=timeout))
        except asyncio.TimeoutError:
            self._open_prompt = prompt
            self._warn(
                outcome, Step.CONFIRM,
                f"No commit decision within {timeout:g}s, discarding",
            )
            return False
        return decision

    def _prompt_for(self, device: str, diff: str) -> "asyncio.Future":
        """Blocking prompt for this device, reusing one left open by a timeout.

        Only one thread reads stdin at a time. An answer typed while the
        next device is being asked belongs to that device; an answer that
        arrived between devices is stale and dropped.
        """
        prompt, self._open_prompt = self._open_prompt, None
        if prompt is not None and prompt.get_loop() is asyncio.get_running_loop():
            if not prompt.done():
                logger.warning(f"{device}: answer the open commit prompt for this device")
                return prompt
            if not prompt.cancelled() and prompt.exception() is None:
                logger.warning(f"Late commit answer ignored: {prompt.result()!r}")
        return _in_daemon_thread(self.confirm, device, diff)

    async def _commit(
        self,
        session: NetworkSession,
        outcome: DeviceOutcome,
        tracker: ChangeTracker,
    ) -> None:
        try:
            reply = await session.commit(self.work_order.reference_id)
        except OperationError as e:
            # The candidate stays staged; no automatic discard
            self._warn(
                outcome, Step.COMMIT,
                f"Changes could not be committed, check the device and roll back manually: {e.message}",
            )
            tracker.log_change("commit", list(self.work_order.commands), False, e.message)
            return

        self._log_device_warnings(outcome, reply)
        outcome.committed = True
        tracker.log_change("commit", list(self.work_order.commands), True)
        logger.info(f"{outcome.device}: changes committed ({self.work_order.reference_id})")

    async def _discard(
        self,
        session: NetworkSession,
        outcome: DeviceOutcome,
        tracker: ChangeTracker,
    ) -> None:
        discard = with_retry(
            max_attempts=self.options.discard_attempts,
            min_wait=0.5,
            max_wait=5,
            exceptions=(OperationError,),
        )(session.discard)

        try:
            reply = await discard()
        except OperationError as e:
            self._warn(
                outcome, Step.DISCARD,
                f"Changes could not be discarded, check the device and roll back manually: {e.message}",
            )
            tracker.log_change("discard", list(self.work_order.commands), False, e.message)
            return

        self._log_device_warnings(outcome, reply)
        outcome.discarded = True
        tracker.log_change("discard", list(self.work_order.commands), True)
        logger.info(f"{outcome.device}: changes discarded")

    async def _unlock(self, session: NetworkSession, outcome: DeviceOutcome) -> None:
        try:
            reply = await session.unlock()
        except OperationError as e:
            self._warn(
                outcome, Step.UNLOCK,
                f"Configuration could not be unlocked, is there an existing session? {e.message}",
            )
            return
        self._log_device_warnings(outcome, reply)
        logger.debug(f"{outcome.device}: configuration unlocked")

    # --- helpers ---

    @staticmethod
    def _warn(outcome: DeviceOutcome, step: Step, message: str, fatal: bool = False) -> None:
        outcome.record(step, message, fatal=fatal)
        if fatal:
            logger.error(f"{outcome.device}: {message}")
        else:
            logger.warning(f"{outcome.device}: {message}")

    @staticmethod
    def _log_device_warnings(outcome: DeviceOutcome, reply: RemoteReply) -> None:
        for warning in reply.warnings:
            logger.warning(f"{outcome.device}: device warning on {reply.operation.value}: {warning}")
