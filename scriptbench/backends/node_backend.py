"""
Node.js child-process backend for scriptbench.

The scripting-shell variant: the workload runs in a long-lived ``node``
process that executes ``resources/node_driver.js``.  The driver speaks a
line-delimited JSON protocol on stdin/stdout and times each invocation with
``process.hrtime`` inside the engine, so the reported durations exclude the
IPC round trip.

The engine is the child process itself: :meth:`ScriptBackend.acquire`
spawns it and :meth:`ScriptBackend.release` asks it to exit, killing it if
it does not stop within ``shutdown_timeout_s``.  An invocation that overruns
the configured timeout kills the process.

Options
-------
- ``executable`` (str, default ``"node"``): node binary name or path.
- ``node_args`` (list[str], optional): extra arguments placed before the
  driver script (e.g. ``["--max-old-space-size=4096"]``).
- ``shutdown_timeout_s`` (float, default ``5.0``).
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import tempfile
from typing import IO, Any

from ..common.execution_guard import call_with_timeout
from ..errors import InvocationError, InvocationTimeoutError, LoadError, ScriptBenchError
from ..resource_loader import BUNDLED_RESOURCE_DIR
from .base import LoadedProgram, ScriptBackend, Workload, register_backend

logger = logging.getLogger(__name__)

DRIVER_SCRIPT = BUNDLED_RESOURCE_DIR / "node_driver.js"

_NODE_INSTALL_HINT = (
    "Node.js executable '{executable}' was not found on PATH.  Install Node.js "
    "or point the backend at it with the 'executable' option."
)


class DriverProtocolError(ScriptBenchError):
    """The node driver exited or replied with something that is not JSON."""


class NodeProcess:
    """A running ``node`` driver process."""

    def __init__(self, command: list[str], shutdown_timeout_s: float = 5.0):
        self.command = command
        self.shutdown_timeout_s = shutdown_timeout_s
        self._stderr: IO[bytes] = tempfile.TemporaryFile()
        self.proc = subprocess.Popen(
            command,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=self._stderr,
            text=True,
            encoding="utf-8",
            bufsize=1,
        )

    def stderr_tail(self, limit: int = 2000) -> str:
        self._stderr.seek(0)
        data = self._stderr.read().decode("utf-8", errors="replace")
        return data[-limit:].strip()

    def request(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Send one request line and block until its response line arrives."""
        assert self.proc.stdin is not None and self.proc.stdout is not None
        try:
            self.proc.stdin.write(json.dumps(payload) + "\n")
            self.proc.stdin.flush()
        except (BrokenPipeError, OSError) as exc:
            raise DriverProtocolError(f"node driver is not accepting input: {exc}") from exc

        line = self.proc.stdout.readline()
        if not line:
            code = self.proc.poll()
            detail = self.stderr_tail() or "no output on stderr"
            raise DriverProtocolError(f"node driver exited (code={code}): {detail}")
        try:
            return json.loads(line)
        except json.JSONDecodeError as exc:
            raise DriverProtocolError(f"malformed driver response: {line[:200]!r}") from exc

    def kill(self) -> None:
        """Stop the process immediately; a blocked :meth:`request` then fails."""
        if self.proc.poll() is None:
            self.proc.kill()
            self.proc.wait()

    def close(self) -> None:
        if self.proc.poll() is None:
            try:
                assert self.proc.stdin is not None
                self.proc.stdin.write(json.dumps({"op": "exit"}) + "\n")
                self.proc.stdin.close()
            except (BrokenPipeError, OSError):
                pass
            try:
                self.proc.wait(timeout=self.shutdown_timeout_s)
            except subprocess.TimeoutExpired:
                logger.warning("node driver did not exit in %.1fs; killing it", self.shutdown_timeout_s)
                self.proc.kill()
                self.proc.wait()
        for stream in (self.proc.stdin, self.proc.stdout):
            if stream is not None and not stream.closed:
                stream.close()
        self._stderr.close()


@register_backend("node")
class NodeBackend(ScriptBackend):
    """Runs workloads in a ``node`` child process."""

    description = "Node.js child process (line-delimited JSON driver)"
    supports_invoke_timeout = True

    @property
    def backend_name(self) -> str:
        return "node"

    @property
    def executable(self) -> str:
        return str(self.options.get("executable") or "node")

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def unavailable_reason(self) -> str:
        return _NODE_INSTALL_HINT.format(executable=self.executable)

    def _create_engine(self) -> NodeProcess:
        path = shutil.which(self.executable)
        if path is None:
            raise LoadError(self.backend_name, self.unavailable_reason())
        command = [path, *list(self.options.get("node_args") or []), str(DRIVER_SCRIPT)]
        try:
            return NodeProcess(command, float(self.options.get("shutdown_timeout_s", 5.0)))
        except OSError as exc:
            raise LoadError(self.backend_name, f"cannot start {path}: {exc}") from exc

    def _destroy_engine(self, engine: NodeProcess) -> None:
        engine.close()

    def _load(self, engine: NodeProcess, workload: Workload) -> Any:
        request = {
            "op": "load",
            "entry": workload.entry_point,
            "sources": [{"name": name, "text": text} for name, text in workload.sources()],
        }
        try:
            response = engine.request(request)
        except DriverProtocolError as exc:
            raise LoadError(self.backend_name, str(exc)) from exc
        if not response.get("ok"):
            raise LoadError(self.backend_name, str(response.get("error", "unknown error")))
        return workload.entry_point

    def _invoke(self, engine: NodeProcess, program: LoadedProgram, timeout_s: float | None) -> float:
        payload = {"op": "invoke", "entry": program.handle}
        try:
            response = call_with_timeout(
                lambda: engine.request(payload),
                timeout_s,
                engine.kill,
                lambda timeout: InvocationTimeoutError(self.backend_name, timeout),
            )
        except DriverProtocolError as exc:
            raise InvocationError(self.backend_name, str(exc)) from exc
        if not response.get("ok"):
            raise InvocationError(self.backend_name, str(response.get("error", "unknown error")))
        return float(response["elapsed_ms"])
