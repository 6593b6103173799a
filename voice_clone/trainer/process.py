"""
Toolkit Process Runner

Spawns RVC toolkit scripts as subprocesses, streams their output line by line
to a caller-supplied consumer, and resolves on exit code. A ProcessHandle
exposes the live process so a caller can request termination while the call
is outstanding.

Each toolkit process is started in its own session. The training and
preprocessing scripts fork worker processes that inherit the output pipes, so
termination signals go to the whole process group.
"""

import asyncio
import logging
import os
import signal
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from voice_clone.core.config import ToolkitConfig, settings
from voice_clone.core.exceptions import (
    LaunchFailedError,
    StageFailedError,
    TerminatedError,
)

logger = logging.getLogger(__name__)

LineConsumer = Callable[[str], None]

# StreamReader buffer limit; training scripts can print very long lines
STREAM_LIMIT = 1024 * 1024


@dataclass
class StageInvocation:
    """One subprocess call: what to run, where, and with which environment."""
    executable: str
    args: List[str]
    cwd: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    label: str = "process"

    @property
    def command(self) -> List[str]:
        return [self.executable, *self.args]


@dataclass
class ProcessResult:
    """Successful process outcome."""
    returncode: int
    stdout_lines: List[str]
    duration: float


def signal_group(process: asyncio.subprocess.Process, sig: int) -> bool:
    """Send sig to the process group led by process. False if none is left."""
    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        return False
    return True


async def wait_bounded(process: asyncio.subprocess.Process, timeout: float) -> bool:
    """Wait for process to exit without being cancelled by the caller's timeout."""
    try:
        await asyncio.wait_for(asyncio.shield(process.wait()), timeout=timeout)
    except asyncio.TimeoutError:
        return False
    return True


class ProcessHandle:
    """
    Cancellation handle for the process a job is currently running.

    The runner attaches each process it launches and detaches it on exit.
    Once cancel() has been called the handle stays cancelled: the running
    process group is terminated and no further process is launched through
    it. Callers can wait for the termination to finish with wait_stopped().
    """

    def __init__(self, kill_grace_seconds: Optional[float] = None):
        if kill_grace_seconds is None:
            kill_grace_seconds = settings.toolkit.kill_grace_seconds
        self.kill_grace_seconds = kill_grace_seconds
        self._process: Optional[asyncio.subprocess.Process] = None
        self._cancel_requested = False
        # Created on first use so it binds to the running loop
        self._stopped: Optional[asyncio.Event] = None

    def _stopped_event(self) -> asyncio.Event:
        if self._stopped is None:
            self._stopped = asyncio.Event()
        return self._stopped

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    def attach(self, process: asyncio.subprocess.Process):
        self._process = process

    def detach(self):
        self._process = None

    def raise_if_cancelled(self, label: str):
        if self._cancel_requested:
            raise TerminatedError(label)

    async def wait_stopped(self):
        """Return once a requested cancel has finished signalling the process group."""
        await self._stopped_event().wait()

    async def cancel(self):
        """
        Request termination of the attached process group.

        SIGTERM goes to the group first. Whatever is left of the group after
        the leader exits, or after the grace period, gets SIGKILL.
        """
        self._cancel_requested = True
        stopped = self._stopped_event()
        process = self._process
        if process is None:
            stopped.set()
            return

        try:
            if process.returncode is None:
                logger.info(f"Terminating process group {process.pid}")
                signal_group(process, signal.SIGTERM)
                if not await wait_bounded(process, self.kill_grace_seconds):
                    logger.warning(
                        f"Process {process.pid} ignored SIGTERM for "
                        f"{self.kill_grace_seconds}s, killing"
                    )

            # Forked workers can outlive the leader and keep its pipes open
            if signal_group(process, signal.SIGKILL):
                logger.info(f"Killed remaining processes in group {process.pid}")
            await wait_bounded(process, self.kill_grace_seconds)
        finally:
            stopped.set()


class ProcessRunner:
    """Runs toolkit invocations and reports their outcome."""

    def __init__(self, config: Optional[ToolkitConfig] = None):
        self.config = config or settings.toolkit

    async def _wait_readers(self, readers: asyncio.Future, handle: ProcessHandle, label: str):
        """
        Wait for both output streams to close, or for a requested cancel to
        finish. Readers still open after that are abandoned: their pipes are
        held by processes that left the group.
        """
        stopped = asyncio.ensure_future(handle.wait_stopped())
        try:
            await asyncio.wait({readers, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopped.cancel()

        if readers.done():
            readers.result()
            return

        logger.warning(f"[{label}] output pipes still open after termination, abandoning")
        readers.cancel()
        await asyncio.wait({readers})

    async def _reap(self, process: asyncio.subprocess.Process):
        """Kill and collect process after the calling task was cancelled."""
        if process.returncode is None:
            signal_group(process, signal.SIGKILL)
        try:
            await wait_bounded(process, self.config.kill_grace_seconds)
        except asyncio.CancelledError:
            logger.debug(f"Stopped waiting for process {process.pid} to exit")

    async def run(
        self,
        invocation: StageInvocation,
        on_line: Optional[LineConsumer] = None,
        handle: Optional[ProcessHandle] = None,
    ) -> ProcessResult:
        """
        Launch the invocation and wait for it to exit.

        on_line is called once per non-empty output line (stdout and stderr),
        in the order each stream produces them, as soon as a line is read.

        Raises:
            LaunchFailedError: the executable could not be started
            StageFailedError: the process exited non-zero
            TerminatedError: the process was stopped through the handle
        """
        label = invocation.label
        if handle is not None:
            handle.raise_if_cancelled(label)

        env = os.environ.copy()
        env.update(invocation.env)

        logger.info(f"[{label}] {' '.join(invocation.command)}")
        started = time.monotonic()

        try:
            process = await asyncio.create_subprocess_exec(
                *invocation.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=invocation.cwd,
                env=env,
                limit=STREAM_LIMIT,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"[{label}] launch failed: {e}")
            raise LaunchFailedError(invocation.executable, str(e)) from e

        if handle is not None:
            handle.attach(process)
            # Cancel may have arrived while the process was being spawned
            if handle.cancel_requested:
                await handle.cancel()

        stdout_lines: deque = deque(maxlen=self.config.stdout_max_lines)
        stderr_tail = ""
        tail_chars = self.config.stderr_tail_chars

        def consume(line: str):
            if on_line is None:
                return
            try:
                on_line(line)
            except Exception as e:
                logger.debug(f"[{label}] line consumer error: {e}")

        async def read_stdout(stream):
            while True:
                try:
                    raw = await stream.readline()
                except ValueError:
                    # Line exceeded STREAM_LIMIT; the reader has dropped it
                    continue
                if not raw:
                    break
                line = raw.decode("utf-8", errors="ignore").strip()
                if not line:
                    continue
                logger.debug(f"[{label} stdout] {line}")
                stdout_lines.append(line)
                consume(line)

        async def read_stderr(stream):
            nonlocal stderr_tail
            while True:
                try:
                    raw = await stream.readline()
                except ValueError:
                    continue
                if not raw:
                    break
                line = raw.decode("utf-8", errors="ignore").strip()
                if not line:
                    continue
                logger.debug(f"[{label} stderr] {line}")
                stderr_tail = (stderr_tail + line + "\n")[-tail_chars:]
                consume(line)

        readers = asyncio.ensure_future(asyncio.gather(
            read_stdout(process.stdout),
            read_stderr(process.stderr),
        ))

        try:
            if handle is None:
                await readers
            else:
                await self._wait_readers(readers, handle, label)

            if handle is not None and handle.cancel_requested:
                await handle.wait_stopped()
                returncode = process.returncode
            else:
                returncode = await process.wait()
        except asyncio.CancelledError:
            readers.cancel()
            await self._reap(process)
            raise
        finally:
            if handle is not None:
                handle.detach()

        duration = time.monotonic() - started

        if handle is not None and handle.cancel_requested:
            logger.info(f"[{label}] terminated on request after {duration:.1f}s")
            raise TerminatedError(label)

        if returncode != 0:
            logger.error(f"[{label}] exited with code {returncode} after {duration:.1f}s")
            raise StageFailedError(label, returncode, stderr_tail.strip())

        logger.info(f"[{label}] completed in {duration:.1f}s")
        return ProcessResult(
            returncode=returncode,
            stdout_lines=list(stdout_lines),
            duration=duration,
        )
