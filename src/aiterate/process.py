"""Process execution boundary: run a toolchain command with a deadline.

Commands are polled so that a ``CancelToken`` set from another thread (or a
signal handler) stops the child process between polls. Each command runs in
its own session so that a timeout or cancellation kills the processes it
spawned (the test binary started by `go test`, for example) as well.
"""

import os
import signal
import subprocess
import threading
import time
from pathlib import Path

import logfire
from pydantic import BaseModel

from aiterate.errors import ExecutionLaunchError, RunCancelledError

POLL_INTERVAL = 0.2
KILL_GRACE = 2.0


def _kill_process_group(proc: subprocess.Popen) -> None:
    """Kill the command together with every process it spawned."""
    if os.name != "posix":
        proc.kill()
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


def _collect_output(proc: subprocess.Popen) -> str:
    """Drain what a killed command wrote before it died."""
    try:
        output, _ = proc.communicate(timeout=KILL_GRACE)
    except subprocess.TimeoutExpired:
        # a descendant left the process group and still holds the pipe
        if proc.stdout is not None:
            proc.stdout.close()
        proc.wait()
        return ""
    return output or ""


class CancelToken:
    """Cooperative cancellation flag shared between a run and its caller."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, where: str = "") -> None:
        if self.cancelled:
            raise RunCancelledError(f"Run cancelled{f' during {where}' if where else ''}")


class CommandResult(BaseModel):
    output: str
    exit_code: int
    timed_out: bool = False

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class CommandRunner:
    """Runs commands synchronously, merging stdout and stderr into one text blob."""

    def __init__(
        self,
        timeout: float | None = 300.0,
        cancel_token: CancelToken | None = None,
        poll_interval: float = POLL_INTERVAL,
    ):
        self.timeout = timeout
        self.cancel_token = cancel_token
        self.poll_interval = poll_interval

    def run(self, args: list[str], cwd: str | Path) -> CommandResult:
        """Run ``args`` in ``cwd``.

        A non-zero exit is returned, not raised. On timeout the child is killed and the
        result carries ``timed_out=True`` with exit code -1.

        Raises:
            ExecutionLaunchError: If the command cannot be started.
            RunCancelledError: If the cancel token is set while the command runs.
        """
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled(args[0])

        with logfire.span("Running command {command}", command=" ".join(args), cwd=str(cwd)):
            try:
                proc = subprocess.Popen(
                    args,
                    cwd=cwd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    start_new_session=os.name == "posix",
                )
            except OSError as e:
                logfire.error("Failed to launch command", command=args[0], error=str(e))
                raise ExecutionLaunchError(f"Failed to launch {args[0]!r} in {cwd}: {e}") from e

            deadline = time.monotonic() + self.timeout if self.timeout is not None else None
            try:
                while True:
                    try:
                        output, _ = proc.communicate(timeout=self.poll_interval)
                        break
                    except subprocess.TimeoutExpired:
                        if self.cancel_token is not None and self.cancel_token.cancelled:
                            _kill_process_group(proc)
                            _collect_output(proc)
                            raise RunCancelledError(
                                f"Run cancelled while running {args[0]!r}"
                            ) from None
                        if deadline is not None and time.monotonic() >= deadline:
                            _kill_process_group(proc)
                            output = _collect_output(proc)
                            logfire.warn("Command timed out", command=args[0], timeout=self.timeout)
                            return CommandResult(
                                output=output + f"\n[aiterate] command timed out after {self.timeout}s\n",
                                exit_code=-1,
                                timed_out=True,
                            )
            except BaseException:
                # Ctrl-C does not reach a child in its own session
                _kill_process_group(proc)
                raise

            logfire.info("Command finished", command=args[0], exit_code=proc.returncode)
            return CommandResult(output=output or "", exit_code=proc.returncode)
