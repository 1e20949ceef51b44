"""Process runner with live output relay and reliable termination.

native-tool-launcher runtime module v0.1.0

This module provides:
- Spawning a native tool from a flat Windows-style command line
- Concurrent stdout/stderr line readers (no pipe-buffer deadlock)
- Optional deadline with graceful shutdown (SIGTERM -> timeout -> SIGKILL)
- Cancel-safe cleanup using a shielded cancel scope

Key design points:
- Windows: the command line is handed to CreateProcess unchanged
- POSIX: the command line is decoded with the Windows rules and passed as argv
- POSIX: start_new_session=True so termination reaches the whole process group
- Windows: CREATE_NEW_PROCESS_GROUP | CREATE_NO_WINDOW (no console, so
  termination uses TerminateProcess rather than CTRL_BREAK_EVENT)
"""

from __future__ import annotations

import codecs
import locale
import logging
import os
import signal
import subprocess
import sys
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import IO, Any

import anyio
import anyio.to_thread

if sys.version_info < (3, 11):
    from exceptiongroup import BaseExceptionGroup

from ..errors import LaunchKilledError, SpawnFailedError, TargetNotFoundError
from ..quoting import quote_argument, split_command_line

__all__ = [
    "InvocationResult",
    "ProcessRunner",
    "ProcessSpec",
    "run_process",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Default timeouts
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after SIGTERM
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL

LineCallback = Callable[[str], None]


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a tool invocation.

    Attributes:
        executable: Path to the target executable
        command_line: Escaped command line (arguments only, no program name)
        cwd: Working directory for the process (None = inherit)
        env: Environment variables (None = inherit parent)
    """

    executable: str
    command_line: str = ""
    cwd: Path | None = None
    env: Mapping[str, str] | None = None


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of a finished tool invocation.

    Attributes:
        exit_code: Exit code of the child, verbatim
        stdout_lines: Lines read from stdout (terminators stripped)
        stderr_lines: Lines read from stderr (terminators stripped)
        pid: Process ID of the child
        duration: Wall-clock seconds from spawn to drained pipes
    """

    exit_code: int
    stdout_lines: list[str] = field(default_factory=list)
    stderr_lines: list[str] = field(default_factory=list)
    pid: int | None = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass
class ProcessRunner:
    """Runs one native tool per call and relays its output line by line.

    Example:
        runner = ProcessRunner()
        spec = ProcessSpec(
            executable=r"C:\\Tools\\wix.exe",
            command_line=join_arguments(["build", "-out", "My App.msi"]),
        )

        result = await runner.run(spec, on_stdout=print)
        sys.exit(result.exit_code)
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    encoding: str | None = None

    async def run(
        self,
        spec: ProcessSpec,
        *,
        on_stdout: LineCallback | None = None,
        on_stderr: LineCallback | None = None,
        timeout: float | None = None,
    ) -> InvocationResult:
        """Run the tool and wait for it to exit with both pipes drained.

        This method:
        1. Checks the executable exists (nothing is spawned otherwise)
        2. Starts the process in an isolated process group/session
        3. Reads stdout and stderr concurrently, forwarding every line
        4. Waits for exit, terminating the process on timeout
        5. Ensures cleanup even if cancelled

        Args:
            spec: Process specification
            on_stdout: Optional callback for each stdout line
            on_stderr: Optional callback for each stderr line
            timeout: Optional deadline in seconds

        Returns:
            InvocationResult carrying the child's exit code (non-zero included)

        Raises:
            TargetNotFoundError: If the executable does not exist
            SpawnFailedError: If the OS could not start the process
            LaunchKilledError: If the deadline passed and the process was killed
            LookupError: If the configured encoding is unknown (nothing is spawned)
        """
        if not os.path.isfile(spec.executable):
            raise TargetNotFoundError(spec.executable)

        # Unknown codecs must fail before the tool gets a chance to run
        encoding = codecs.lookup(self.encoding or locale.getpreferredencoding(False)).name

        process = self._spawn(spec)
        started = time.monotonic()

        logger.debug(
            f"Started subprocess pid={process.pid} "
            f"executable={spec.executable} cwd={spec.cwd}"
        )

        stdout_lines: list[str] = []
        stderr_lines: list[str] = []
        timed_out = False

        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._read_lines, process.stdout, encoding, stdout_lines, on_stdout)
                tg.start_soon(self._read_lines, process.stderr, encoding, stderr_lines, on_stderr)

                if not await self._wait_for_exit(process, timeout):
                    timed_out = True
                    logger.debug(
                        f"Subprocess exceeded timeout pid={process.pid} "
                        f"timeout={timeout}s"
                    )
                    await self._terminate_process(process)
        except BaseExceptionGroup as group:
            # Surface the reader's own error rather than the group wrapper
            raise _first_error(group) from None
        finally:
            # Shield cleanup so cancellation cannot leave an orphan behind
            with anyio.CancelScope(shield=True):
                await self._do_cleanup(process)

        duration = time.monotonic() - started

        if timed_out:
            raise LaunchKilledError(timeout or 0.0, pid=process.pid)

        logger.debug(
            f"Subprocess completed pid={process.pid} "
            f"returncode={process.returncode} duration={duration:.2f}s"
        )

        return InvocationResult(
            exit_code=process.returncode,
            stdout_lines=stdout_lines,
            stderr_lines=stderr_lines,
            pid=process.pid,
            duration=duration,
        )

    def _spawn(self, spec: ProcessSpec) -> subprocess.Popen[bytes]:
        """Start the process; wraps OS-level failures in SpawnFailedError."""
        kwargs = self._build_subprocess_kwargs(spec)

        try:
            # Absolute path: a bare name must not fall back to a PATH lookup
            return subprocess.Popen(
                self._build_args(spec),
                executable=os.path.abspath(spec.executable),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=spec.cwd,
                **kwargs,
            )
        except (OSError, ValueError) as e:
            logger.debug(f"Failed to spawn {spec.executable}: {e}")
            raise SpawnFailedError(str(e)) from e

    def _build_args(self, spec: ProcessSpec) -> str | list[str]:
        """Build the args handed to Popen.

        Windows gets the flat command line untouched (Popen passes a str
        straight to CreateProcess). POSIX has no flat command lines, so the
        line is decoded with the same rules the Windows child would apply.
        """
        if IS_WINDOWS:
            program = quote_argument(spec.executable)
            if spec.command_line:
                return f"{program} {spec.command_line}"
            return program
        return [spec.executable, *split_command_line(spec.command_line)]

    def _build_subprocess_kwargs(self, spec: ProcessSpec) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs.

        Args:
            spec: Process specification

        Returns:
            Dict of kwargs for subprocess.Popen
        """
        kwargs: dict[str, Any] = {}

        # Environment
        if spec.env is not None:
            kwargs["env"] = dict(spec.env)

        # Platform-specific isolation
        if IS_WINDOWS:
            kwargs["creationflags"] = (
                subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW
            )
        else:
            # POSIX: start_new_session (equivalent to setsid)
            kwargs["start_new_session"] = True

        return kwargs

    async def _read_lines(
        self,
        stream: IO[bytes] | None,
        encoding: str,
        sink: list[str],
        callback: LineCallback | None,
    ) -> None:
        """Read one pipe to EOF, forwarding lines in arrival order.

        Each reader owns its sink, so no locking is needed. Callbacks run on
        the event loop thread.
        """
        if stream is None:
            return

        while True:
            raw = await anyio.to_thread.run_sync(stream.readline, abandon_on_cancel=True)
            if not raw:
                break
            line = raw.decode(encoding, errors="replace").rstrip("\r\n")
            sink.append(line)
            if callback:
                callback(line)

    async def _wait_for_exit(
        self,
        process: subprocess.Popen[bytes],
        timeout: float | None,
    ) -> bool:
        """Wait for the process to exit.

        Returns:
            True if it exited, False if the timeout elapsed first
        """
        with anyio.move_on_after(timeout):
            await anyio.to_thread.run_sync(process.wait, abandon_on_cancel=True)
            return True
        return False

    async def _do_cleanup(self, process: subprocess.Popen[bytes]) -> None:
        """Terminate the process if still running and release its pipes."""
        if process.poll() is None:
            await self._terminate_process(process)

        # Readers may still be blocked if the process outlived the wait
        # (cancellation); only close pipes that reached EOF.
        if process.returncode is not None:
            for stream in (process.stdout, process.stderr):
                if stream is not None and not stream.closed:
                    with anyio.move_on_after(self.kill_timeout):
                        await anyio.to_thread.run_sync(
                            partial(_close_quietly, stream), abandon_on_cancel=True
                        )

    async def _terminate_process(self, process: subprocess.Popen[bytes]) -> None:
        """Terminate subprocess gracefully, then forcefully if needed.

        Termination strategy:
        1. Send SIGTERM (or terminate() on Windows)
        2. Wait up to term_timeout for graceful exit
        3. If still running, send SIGKILL (or kill() on Windows)
        4. Wait up to kill_timeout for forced exit

        Args:
            process: The subprocess to terminate
        """
        pid = process.pid
        logger.debug(f"Terminating subprocess pid={pid}")

        try:
            # Step 1: Graceful termination
            if IS_WINDOWS:
                self._windows_terminate(process)
            else:
                self._posix_terminate(process)

            # Step 2: Wait for graceful exit
            if await self._wait_for_exit(process, self.term_timeout):
                logger.debug(
                    f"Subprocess terminated gracefully pid={pid} "
                    f"returncode={process.returncode}"
                )
                return

            # Step 3: Force kill
            logger.debug(f"Force killing subprocess pid={pid}")
            if IS_WINDOWS:
                self._windows_kill(process)
            else:
                self._posix_kill(process)

            # Step 4: Wait for forced exit
            if await self._wait_for_exit(process, self.kill_timeout):
                logger.debug(
                    f"Subprocess killed pid={pid} "
                    f"returncode={process.returncode}"
                )
            else:
                logger.warning(f"Subprocess did not exit after kill pid={pid}")

        except ProcessLookupError:
            # Process already exited
            logger.debug(f"Subprocess already exited pid={pid}")
        except OSError as e:
            logger.warning(f"Error terminating subprocess pid={pid}: {e}")

    def _posix_terminate(self, process: subprocess.Popen[bytes]) -> None:
        """Send SIGTERM to the process group on POSIX systems."""
        try:
            # Process group ID equals pid due to start_new_session
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, signal.SIGTERM)
            logger.debug(f"Sent SIGTERM to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to terminate: {e}")
            process.terminate()

    def _posix_kill(self, process: subprocess.Popen[bytes]) -> None:
        """Send SIGKILL to the process group on POSIX systems."""
        try:
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, signal.SIGKILL)
            logger.debug(f"Sent SIGKILL to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to kill: {e}")
            process.kill()

    def _windows_terminate(self, process: subprocess.Popen[bytes]) -> None:
        """Terminate on Windows.

        CREATE_NO_WINDOW leaves the child without a console, so
        CTRL_BREAK_EVENT would never arrive; TerminateProcess is the only
        polite step available.
        """
        try:
            process.terminate()
            logger.debug(f"Called terminate() on pid={process.pid}")
        except ProcessLookupError:
            pass

    def _windows_kill(self, process: subprocess.Popen[bytes]) -> None:
        """Force kill on Windows."""
        try:
            process.kill()
            logger.debug(f"Called kill() on pid={process.pid}")
        except ProcessLookupError:
            pass


def _first_error(group: BaseExceptionGroup) -> BaseException:
    """Return the first non-cancellation leaf of an exception group."""
    cancelled = anyio.get_cancelled_exc_class()
    for exc in group.exceptions:
        if isinstance(exc, BaseExceptionGroup):
            exc = _first_error(exc)
        if not isinstance(exc, (cancelled, BaseExceptionGroup)):
            return exc
    return group


def _close_quietly(stream: IO[bytes]) -> None:
    try:
        stream.close()
    except OSError as e:
        logger.debug(f"Error closing pipe: {e}")


# Convenience function for simple use cases
def run_process(
    spec: ProcessSpec,
    *,
    on_stdout: LineCallback | None = None,
    on_stderr: LineCallback | None = None,
    timeout: float | None = None,
) -> InvocationResult:
    """Run a process synchronously.

    This is a convenience function for callers without an event loop.

    Args:
        spec: Process specification
        on_stdout: Optional callback for stdout lines
        on_stderr: Optional callback for stderr lines
        timeout: Optional deadline in seconds

    Returns:
        InvocationResult of the finished process
    """
    runner = ProcessRunner()
    return anyio.run(
        partial(
            runner.run,
            spec,
            on_stdout=on_stdout,
            on_stderr=on_stderr,
            timeout=timeout,
        )
    )
